"""
SchoolDesk Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models for the school domain and the API envelopes.
Why:   Automatic serialization and OpenAPI doc generation, and a single
       record shape shared by the SQL and Mongo repositories.
How:   Repositories return `SchoolRecord`; the service returns it with the
       image resolved to a URL; routes wrap it in the envelopes below.

Design Decision:
    Input fields are all Optional strings. Multipart forms cannot express
    "required" in a way that yields our error messages; FastAPI would answer
    422 with its own format. The validator decides instead, so clients get
    400 with "All fields are required" or the accumulated rule messages.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Domain Models
# ══════════════════════════════════════════════════════════════════════════


class SchoolInput(BaseModel):
    """Candidate text fields for a create or update, as received."""
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    contact: Optional[str] = None
    email_id: Optional[str] = None


class SchoolFields(BaseModel):
    """Validated, trimmed text fields handed to a repository."""
    name: str
    address: str
    city: str
    state: str
    contact: str
    email_id: str

    @classmethod
    def from_input(cls, data: SchoolInput) -> "SchoolFields":
        return cls(**{key: (value or "").strip() for key, value in data.model_dump().items()})


class ImageUpload(BaseModel):
    """An uploaded image held in memory until validation passes."""
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class SchoolRecord(BaseModel):
    """
    What:  A persisted school as returned by every repository.
    Why:   The `id` is an opaque string so UUIDs (SQL) and ObjectIds (Mongo)
           look identical to callers.
    """
    id: str = Field(description="Opaque unique identifier")
    name: str
    address: str
    city: str
    state: str
    contact: str
    email_id: str
    image: str = Field(description="Image URL (or stored reference before resolution)")
    created_at: datetime
    updated_at: datetime


# ══════════════════════════════════════════════════════════════════════════
# Response Envelopes
# ══════════════════════════════════════════════════════════════════════════


class SchoolListResponse(BaseModel):
    """Returned by GET /api/schools and GET /api/schools/search/{term}."""
    success: bool = True
    data: List[SchoolRecord] = Field(description="Schools, newest first")
    count: int = Field(description="Number of schools in `data`")


class SchoolDetailResponse(BaseModel):
    """Returned by GET /api/schools/{id}."""
    success: bool = True
    data: SchoolRecord


class SchoolMutationResponse(BaseModel):
    """Returned by POST and PUT /api/schools."""
    success: bool = True
    message: str
    data: SchoolRecord


class MessageResponse(BaseModel):
    """Returned by DELETE /api/schools/{id}."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Uniform error body for every failed request.

    Example:
        {
            "success": false,
            "message": "Address must be at least 10 characters long, Please enter a valid email address",
            "error": "validation_error",
            "request_id": "1a2b3c4d"
        }
    """
    success: bool = False
    message: str = Field(description="Human-readable error description")
    error: Optional[str] = Field(default=None, description="Machine-readable error code")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Liveness response for GET /api/health."""
    status: str = Field(default="OK")
    message: str
    timestamp: datetime
