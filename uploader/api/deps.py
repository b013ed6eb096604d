import logging

from fastapi import HTTPException, Request, status

from uploader.core.config import Settings
from uploader.core.security import (
    credentials_configured,
    parse_basic_authorization,
    verify_credentials,
)
from uploader.services.upload import UploadService

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Basic"},
    )


async def require_basic_auth(request: Request) -> None:
    settings = get_app_settings(request)
    if not credentials_configured(settings):
        return

    credentials = parse_basic_authorization(request.headers.get("Authorization"))
    if credentials is None or not verify_credentials(
        settings.auth_user,
        settings.auth_password,
        *credentials,
    ):
        client = request.client.host if request.client else "unknown"
        logger.warning("Rejected request to %s from %s", request.url.path, client)
        raise _unauthorized()
