from __future__ import annotations

from fastapi import APIRouter, Depends

from memobot.commands.chat.chat_command import ChatCommand
from memobot.core.app_state import AppState
from memobot.models.user import User
from memobot.routers.utils.dependencies import get_app_state, get_current_user
from memobot.schemas.chat import ChatRequest, ChatResponse

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    current_user: User = Depends(get_current_user),
    app_state: AppState = Depends(get_app_state),
) -> ChatResponse:
    """Send a message on the chat channel and get the assistant's reply."""
    return await ChatCommand(app_state).execute(current_user, body)
