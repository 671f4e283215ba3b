"""Pydantic request/response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body of POST /api/auth/register and POST /api/auth/login."""

    model_config = ConfigDict(extra="ignore")
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _username_required(cls, value: str) -> str:
        if not value.strip():
            msg = "Username is required"
            raise ValueError(msg)
        return value

    @field_validator("password")
    @classmethod
    def _password_required(cls, value: str) -> str:
        if not value:
            msg = "Password is required"
            raise ValueError(msg)
        return value


class CreateUploadRequest(BaseModel):
    """Body of POST /api/uploads."""

    model_config = ConfigDict(extra="ignore")
    taskId: str  # noqa: N815

    @field_validator("taskId")
    @classmethod
    def _task_id_required(cls, value: str) -> str:
        if not value:
            msg = "taskId is required"
            raise ValueError(msg)
        return value


class AttachFileRequest(BaseModel):
    """Body of PUT /api/uploads/{upload_id}/file."""

    model_config = ConfigDict(extra="ignore")
    objectPath: str | None = None  # noqa: N815


class ContactRequest(BaseModel):
    """Body of POST /api/contact."""

    model_config = ConfigDict(extra="ignore")
    name: str
    email: EmailStr
    message: str
    enquiryType: str = "General"  # noqa: N815
    company: str | None = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if not value.strip():
            msg = "Name is required"
            raise ValueError(msg)
        return value

    @field_validator("message")
    @classmethod
    def _message_required(cls, value: str) -> str:
        if not value.strip():
            msg = "Message is required"
            raise ValueError(msg)
        return value

    @field_validator("enquiryType")
    @classmethod
    def _enquiry_type_required(cls, value: str) -> str:
        if not value.strip():
            msg = "Enquiry type is required"
            raise ValueError(msg)
        return value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_users: int
    total_tasks: int
    uploads_by_status: dict[str, int]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class UserResponse(BaseModel):
    """Public user shape."""

    model_config = ConfigDict(extra="forbid")
    id: str
    username: str
    balance: int


class TaskResponse(BaseModel):
    """Task catalog entry."""

    model_config = ConfigDict(extra="forbid")
    id: str
    title: str
    difficulty: Literal["Low", "Medium", "High"]
    reward: int
    description: str | None


class UploadResponse(BaseModel):
    """A user's upload record."""

    model_config = ConfigDict(extra="forbid")
    id: str
    userId: str  # noqa: N815
    taskId: str  # noqa: N815
    status: str
    fileUrl: str | None  # noqa: N815
    uploadedAt: str  # noqa: N815


class CreateUploadResponse(BaseModel):
    """Response model for POST /api/uploads."""

    model_config = ConfigDict(extra="forbid")
    upload: UploadResponse
    reward: int
    newBalance: int  # noqa: N815


class AdminUploadResponse(BaseModel):
    """Upload joined with username and task title for the admin listing."""

    model_config = ConfigDict(extra="forbid")
    id: str
    uploadedAt: str  # noqa: N815
    username: str
    taskTitle: str  # noqa: N815
    fileUrl: str | None  # noqa: N815
    status: str


class PriceResponse(BaseModel):
    """Response model for GET /api/skill-price."""

    model_config = ConfigDict(extra="forbid")
    price: float | None
