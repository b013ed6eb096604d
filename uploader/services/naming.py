import posixpath
import re
from pathlib import PurePosixPath
from typing import Final
from uuid import uuid4

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9_-]{1,16}$")

# Fixed table so the inferred extension does not depend on the host's mime registry.
MIME_EXTENSIONS: Final[dict[str, tuple[str, ...]]] = {
    "application/gzip": (".gz",),
    "application/json": (".json",),
    "application/msword": (".doc",),
    "application/octet-stream": (".bin",),
    "application/pdf": (".pdf",),
    "application/rtf": (".rtf",),
    "application/vnd.ms-excel": (".xls",),
    "application/vnd.ms-powerpoint": (".ppt",),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": (".pptx",),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": (".xlsx",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": (".docx",),
    "application/wasm": (".wasm",),
    "application/x-7z-compressed": (".7z",),
    "application/x-bzip2": (".bz2",),
    "application/x-tar": (".tar",),
    "application/xml": (".xml",),
    "application/zip": (".zip",),
    "audio/aac": (".aac",),
    "audio/flac": (".flac",),
    "audio/mpeg": (".mp3",),
    "audio/ogg": (".ogg", ".oga"),
    "audio/wav": (".wav",),
    "audio/webm": (".weba",),
    "audio/x-wav": (".wav",),
    "font/otf": (".otf",),
    "font/ttf": (".ttf",),
    "font/woff": (".woff",),
    "font/woff2": (".woff2",),
    "image/avif": (".avif",),
    "image/bmp": (".bmp",),
    "image/gif": (".gif",),
    "image/heic": (".heic",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/svg+xml": (".svg",),
    "image/tiff": (".tiff", ".tif"),
    "image/vnd.microsoft.icon": (".ico",),
    "image/webp": (".webp",),
    "image/x-icon": (".ico",),
    "text/css": (".css",),
    "text/csv": (".csv",),
    "text/html": (".html", ".htm"),
    "text/javascript": (".js",),
    "text/markdown": (".md",),
    "text/plain": (".txt",),
    "text/xml": (".xml",),
    "video/mp4": (".mp4",),
    "video/mpeg": (".mpeg",),
    "video/ogg": (".ogv",),
    "video/quicktime": (".mov",),
    "video/webm": (".webm",),
    "video/x-matroska": (".mkv",),
    "video/x-msvideo": (".avi",),
}


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def guess_extension(filename: str | None, content_type: str | None) -> str:
    """Pick the extension for a stored object.

    The suffix of the uploaded filename wins when it looks like a plain
    extension; otherwise the first extension registered for the declared
    content type is used. Returns an empty string when neither applies.
    """
    if filename:
        suffix = PurePosixPath(filename.replace("\\", "/")).suffix
        if _EXTENSION_RE.match(suffix):
            return suffix

    if content_type:
        candidates = MIME_EXTENSIONS.get(_media_type(content_type), ())
        if candidates:
            return candidates[0]
    return ""


def generate_filename(extension: str = "") -> str:
    return f"{uuid4()}{extension}"


def object_key(prefix: str, filename: str) -> str:
    prefix = prefix.strip("/")
    if not prefix:
        return filename
    return posixpath.join(prefix, filename)


def public_url(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/{filename}"
