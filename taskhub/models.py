# Pydantic v2 schemas for request payloads and API responses.

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Status = Literal["pending", "in_progress", "completed"]
STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed")


# --- Task schemas ---


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: Status
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"title": "Finish Project", "status": "pending"},
                {"title": "Write docs", "description": "API docs", "status": "in_progress"},
            ]
        },
    )


class TaskUpdate(BaseModel):
    """Partial update; only the fields explicitly sent are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: Status | None = None
    model_config = ConfigDict(extra="ignore")


class Task(BaseModel):
    id: int
    user_id: int
    title: str
    description: str | None
    status: Status
    has_attachment: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # ORM -> schema

    @classmethod
    def from_row(cls, row) -> "Task":
        task = cls.model_validate(row)
        task.has_attachment = bool(row.attachment)
        return task


class TaskMessage(BaseModel):
    message: str
    task: Task


# --- Comment schemas ---


class CommentAuthor(BaseModel):
    id: int
    name: str
    email: str
    model_config = ConfigDict(from_attributes=True)


class Comment(BaseModel):
    id: int
    task_id: int
    user_id: int
    content: str
    created_at: datetime
    updated_at: datetime
    user: CommentAuthor | None = None
    task: Task | None = None


class CommentMessage(BaseModel):
    message: str
    comment: Comment


# --- User / Auth schemas ---


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirmation: str | None = None
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Full Name",
                    "email": "you@example.com",
                    "password": "password123",
                    "password_confirmation": "password123",
                }
            ]
        },
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserPublic(BaseModel):
    id: int
    name: str
    email: EmailStr
    model_config = ConfigDict(from_attributes=True)  # allow ORM -> schema


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["Bearer"] = "Bearer"
    message: str | None = None
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"access_token": "<jwt>", "token_type": "Bearer"}]}
    )


class MessageResponse(BaseModel):
    message: str
