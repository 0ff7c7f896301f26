"""Pydantic request schemas shared by the API routes.

Field names follow the JSON the website sends (camelCase). Required fields are
declared optional so the routes can answer a missing value with a 400 and an
``{"error": ...}`` body instead of FastAPI's default 422.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: Optional[str] = None
    sessionId: Optional[str] = Field(default=None, description="Thread id (OpenAI) or local session id")
    userId: Optional[str] = Field(default=None, description="Client-generated pseudo user id, attribution only")


class UserRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    sessionId: Optional[str] = None


class ProjectCreateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None


class ProjectUpdateRequest(ProjectCreateRequest):
    id: Optional[str] = None
