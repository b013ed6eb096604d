from functools import lru_cache
from importlib import resources


@lru_cache(maxsize=1)
def upload_page() -> str:
    return resources.files("uploader").joinpath("templates/upload.html").read_text(encoding="utf-8")
