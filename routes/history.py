"""
Route handlers for conversation history.
"""
from fastapi import APIRouter, Depends, Query

from auth import get_current_user_id
from models.api_models import HistoryPage, RenameRequest
from routes.dependencies import get_history_service
from services.history_service import HistoryService

router = APIRouter(prefix="/api/chat/history")


@router.get("", response_model=HistoryPage, response_model_by_alias=True)
async def list_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    history: HistoryService = Depends(get_history_service),
):
    """Caller's conversations, most recently active first."""
    return history.list_page(user_id, page=page, limit=limit)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    history: HistoryService = Depends(get_history_service),
):
    return history.get_conversation(user_id, conversation_id)


@router.patch("/{conversation_id}")
async def rename_conversation(
    conversation_id: str,
    body: RenameRequest,
    user_id: str = Depends(get_current_user_id),
    history: HistoryService = Depends(get_history_service),
):
    return history.rename_conversation(user_id, conversation_id, body.title)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    history: HistoryService = Depends(get_history_service),
):
    history.delete_conversation(user_id, conversation_id)
    return {"message": "Conversation deleted successfully"}
