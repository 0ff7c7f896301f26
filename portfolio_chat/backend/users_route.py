"""Visitor contact records: create-or-update by email and lookup."""

from typing import Optional

from fastapi import APIRouter, Query
from loguru import logger

from portfolio_chat.backend.schemas import UserRequest
from portfolio_chat.memory import crud
from portfolio_chat.utils.error_handler import ApiError
from portfolio_chat.utils.feature_flags import is_feature_enabled

router = APIRouter(tags=["users"])


@router.post("/api/users")
def upsert_user(req: UserRequest):
    if not req.email:
        raise ApiError(400, "Email is required")

    user = crud.find_user_by_email(req.email)
    if user:
        user = crud.update_user(user["id"], name=req.name)
        event_type = "user_updated"
    else:
        user = crud.create_user(req.email, req.name)
        event_type = "user_created"
    logger.info("{} {}", event_type, user["id"])

    if is_feature_enabled("record_telemetry"):
        crud.record_event(event_type, {"userId": user["id"]}, user["id"], req.sessionId)

    if req.sessionId:
        crud.set_session_user(req.sessionId, user["id"])

    return {"user": user, "success": True}


@router.get("/api/users")
def get_user(
    email: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None, alias="id"),
):
    if not email and not user_id:
        raise ApiError(400, "Email or ID is required")

    user = crud.find_user_by_email(email) if email else crud.find_user(user_id)
    if not user:
        raise ApiError(404, "User not found")

    return {"user": user, "success": True}
