from uploader.schemas.upload import StoredObject

__all__ = [
    "StoredObject",
]
