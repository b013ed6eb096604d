from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from uploader.api.deps import require_basic_auth
from uploader.api.pages import upload_page
from uploader.api.routers import upload as upload_router
from uploader.core.config import Settings, get_settings
from uploader.services.storage import StorageService, create_storage_service
from uploader.services.upload import UploadService


async def plain_text_http_exception(
    request: Request, exc: StarletteHTTPException
) -> PlainTextResponse:
    return PlainTextResponse(
        str(exc.detail),
        status_code=exc.status_code,
        headers=exc.headers,
    )


def create_app(
    settings: Settings | None = None,
    storage: StorageService | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    storage = storage or create_storage_service(settings)

    app = FastAPI(
        debug=settings.debug,
        title="Bucket Uploader",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        dependencies=[Depends(require_basic_auth)],
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.upload_service = UploadService(settings, storage)

    app.add_exception_handler(StarletteHTTPException, plain_text_http_exception)
    app.include_router(upload_router.router)

    upload_page()
    return app
