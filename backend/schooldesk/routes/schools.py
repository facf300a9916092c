"""
SchoolDesk Backend — School Route Handlers
============================================

What:  CRUD and search endpoints for schools under /api/schools.
Why:   The front-end lists, searches, adds, edits and removes schools.
How:   Each handler reads form fields / path params, delegates to
       SchoolService, and wraps the result in a response envelope.
       Errors are raised as application exceptions and rendered by the
       global handlers in main.py.

Endpoints:
    GET    /api/schools                 → list (newest first)
    GET    /api/schools/search/{term}   → search name/city/state/address
    GET    /api/schools/{id}            → detail
    POST   /api/schools                 → create (multipart, image required)
    PUT    /api/schools/{id}            → update (multipart, image optional)
    DELETE /api/schools/{id}            → delete

Route order matters: /schools/search/{term} is declared before
/schools/{school_id} so "search" is never taken for an id.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from schooldesk.dependencies import get_school_service
from schooldesk.schemas.school import (
    ErrorResponse,
    ImageUpload,
    MessageResponse,
    SchoolDetailResponse,
    SchoolInput,
    SchoolListResponse,
    SchoolMutationResponse,
)
from schooldesk.services.school_service import SchoolService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Schools"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input or duplicate email", "model": ErrorResponse},
    404: {"description": "School not found", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


async def read_upload(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """
    Read an uploaded file into memory.

    Browsers submit an empty file part (no filename, no bytes) when the
    file input is left blank; that counts as no image.
    """
    if image is None:
        return None
    content = await image.read()
    if not image.filename and not content:
        return None
    return ImageUpload(
        filename=image.filename or "",
        content=content,
        content_type=image.content_type,
    )


def school_form(
    name: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    contact: Optional[str] = Form(None),
    email_id: Optional[str] = Form(None),
) -> SchoolInput:
    """Multipart text fields. All optional here; SchoolService enforces presence."""
    return SchoolInput(
        name=name,
        address=address,
        city=city,
        state=state,
        contact=contact,
        email_id=email_id,
    )


@router.get(
    "/schools",
    response_model=SchoolListResponse,
    responses={500: ERROR_RESPONSES[500]},
    summary="List all schools",
)
async def list_schools(
    request: Request,
    service: SchoolService = Depends(get_school_service),
) -> SchoolListResponse:
    schools = await service.list_schools(str(request.base_url))
    return SchoolListResponse(data=schools, count=len(schools))


@router.get(
    "/schools/search/{term}",
    response_model=SchoolListResponse,
    responses={500: ERROR_RESPONSES[500]},
    summary="Search schools by name, city, state or address",
)
async def search_schools(
    term: str,
    request: Request,
    service: SchoolService = Depends(get_school_service),
) -> SchoolListResponse:
    """Case-insensitive substring match; the term is taken literally."""
    schools = await service.search_schools(term, str(request.base_url))
    return SchoolListResponse(data=schools, count=len(schools))


@router.get(
    "/schools/{school_id}",
    response_model=SchoolDetailResponse,
    responses=ERROR_RESPONSES,
    summary="Get one school",
)
async def get_school(
    school_id: str,
    request: Request,
    service: SchoolService = Depends(get_school_service),
) -> SchoolDetailResponse:
    school = await service.get_school(school_id, str(request.base_url))
    return SchoolDetailResponse(data=school)


@router.post(
    "/schools",
    response_model=SchoolMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: ERROR_RESPONSES[400], 500: ERROR_RESPONSES[500]},
    summary="Add a school",
)
async def add_school(
    request: Request,
    data: SchoolInput = Depends(school_form),
    image: Optional[UploadFile] = File(None),
    service: SchoolService = Depends(get_school_service),
) -> SchoolMutationResponse:
    """
    Multipart form: name, address, city, state, contact, email_id and an
    `image` file (jpg, jpeg, png, gif or webp).
    """
    upload = await read_upload(image)
    school = await service.add_school(data, upload, str(request.base_url))
    return SchoolMutationResponse(message="School added successfully", data=school)


@router.put(
    "/schools/{school_id}",
    response_model=SchoolMutationResponse,
    responses=ERROR_RESPONSES,
    summary="Update a school",
)
async def update_school(
    school_id: str,
    request: Request,
    data: SchoolInput = Depends(school_form),
    image: Optional[UploadFile] = File(None),
    service: SchoolService = Depends(get_school_service),
) -> SchoolMutationResponse:
    """All six fields are replaced. The image is replaced only if one is sent."""
    upload = await read_upload(image)
    school = await service.update_school(school_id, data, upload, str(request.base_url))
    return SchoolMutationResponse(message="School updated successfully", data=school)


@router.delete(
    "/schools/{school_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Delete a school and its image",
)
async def delete_school(
    school_id: str,
    service: SchoolService = Depends(get_school_service),
) -> MessageResponse:
    await service.delete_school(school_id)
    return MessageResponse(message="School deleted successfully")
