from pydantic import BaseModel, ConfigDict, Field


class StoredObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    filename: str
    url: str
    size: int = Field(..., ge=0)
    content_type: str
