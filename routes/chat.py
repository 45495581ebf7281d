"""
Route handlers for chat completion.
Handles POST /api/chat/send, returning JSON or a Server-Sent Events stream.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from auth import get_current_user_id
from models.api_models import ChatRequest, ChatResponse
from models.chat_models import ChatStream
from routes.dependencies import get_chat_service
from services.chat_service import ChatService
from services.stream_service import StreamService
from utils.logger import app_logger

router = APIRouter(prefix="/api/chat")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"
}


class EventStreamResponse(StreamingResponse):
    """StreamingResponse that closes its event stream however the response ends, even before the first event."""

    media_type = "text/event-stream"

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            closer = getattr(self.body_iterator, "aclose", None)
            if closer is not None:
                await closer()


@router.post("/send", response_model=ChatResponse, response_model_by_alias=True)
async def send_message(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Send a message and get the assistant's answer.

    With stream=true the answer arrives as SSE data events followed by an end event.
    """
    app_logger.info(f"Chat request from {user_id} (stream={request.stream})")
    result = await chat_service.handle(
        user_id=user_id,
        message=request.message,
        conversation_id=request.conversation_id,
        stream=request.stream,
    )

    if isinstance(result, ChatStream):
        return EventStreamResponse(
            StreamService.relay_events(result.conversation_id, chat_service.relay(result)),
            headers=SSE_HEADERS,
        )

    return StreamService.build_reply_payload(result)
