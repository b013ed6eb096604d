from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.datastructures import UploadFile

from uploader.api.deps import get_upload_service
from uploader.api.pages import upload_page
from uploader.api.routing import AnyMethodRoute
from uploader.services.storage import StorageError
from uploader.services.upload import InvalidUploadError, UploadService

router = APIRouter(tags=["upload"], route_class=AnyMethodRoute)


def upload_form() -> HTMLResponse:
    return HTMLResponse(
        upload_page(),
        headers={"Cache-Control": "private, max-age=0"},
    )


async def upload_file(request: Request, service: UploadService) -> PlainTextResponse:
    try:
        async with request.form() as form:
            files = [item for item in form.getlist("file") if isinstance(item, UploadFile)]
            if not files:
                raise InvalidUploadError("missing file field 'file'")
            stored = await service.store(files[0])
    except InvalidUploadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return PlainTextResponse(stored.url)


@router.api_route("/", methods=["GET", "POST"])
async def root(
    request: Request,
    service: UploadService = Depends(get_upload_service),
) -> Response:
    if request.method == "POST":
        return await upload_file(request, service)
    return upload_form()


@router.api_route("/{path:path}", methods=["GET", "POST"], include_in_schema=False)
async def redirect_to_root(path: str) -> RedirectResponse:
    return RedirectResponse("/", status_code=status.HTTP_302_FOUND)
