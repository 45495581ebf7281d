"""
Dependency injection helpers for route handlers.
"""
from fastapi import Request

from services.chat_service import ChatService
from services.history_service import HistoryService


def get_chat_service(request: Request) -> ChatService:
    """The ChatService built at application startup."""
    return request.app.state.chat_service


def get_history_service(request: Request) -> HistoryService:
    return request.app.state.history_service
