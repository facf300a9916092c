"""
SchoolDesk Backend — Local Image Serving
==========================================

What:  GET <IMAGES_URL_PATH>/{filename} serves images written by
       LocalImageStore.
Who:   Mounted by create_app() only when IMAGE_STORAGE=local; with S3 the
       stored references are already public URLs.

Security:
    The filename is resolved against the images directory and rejected if
    it would land anywhere else, so "../" tricks get a 404.
"""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import FileResponse

from schooldesk.dependencies import get_school_service
from schooldesk.exceptions import NotFoundError
from schooldesk.services.image_store import LocalImageStore
from schooldesk.services.school_service import SchoolService

# Images are immutable once written: a replacement gets a new name
CACHE_CONTROL = "public, max-age=86400"


def build_router(url_path: str) -> APIRouter:
    router = APIRouter(tags=["Images"])

    @router.get(
        url_path + "/{filename}",
        response_class=FileResponse,
        summary="Serve a stored school image",
    )
    async def get_image(
        filename: str,
        service: SchoolService = Depends(get_school_service),
    ) -> Response:
        store = service.image_store
        path = store.path_for(filename) if isinstance(store, LocalImageStore) else None
        if path is None or not path.is_file():
            raise NotFoundError(resource="Image", resource_id=filename)
        return FileResponse(path, headers={"Cache-Control": CACHE_CONTROL})

    return router
