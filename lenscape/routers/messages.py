"""Direct messaging API routes."""
from __future__ import annotations

from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, WebSocket, status
from sqlalchemy.orm import Session

from ..database import get_session, session_scope
from ..models import Conversation, Message, User
from ..schemas import (
    AttachmentUploadResponse,
    ConversationListResponse,
    ConversationLookupResponse,
    MessageEditRequest,
    MessageResponse,
    MessageSendRequest,
    MessageThreadResponse,
    UnreadCountResponse,
)
from ..services import (
    decode_access_token,
    delete_conversation,
    delete_message,
    edit_message,
    find_conversation,
    get_conversation_for,
    get_current_user,
    get_or_create_conversation,
    get_profile_by_id,
    list_conversations,
    list_messages,
    send_message,
    unread_message_count,
    upload_message_images,
)
from ..services.message_service import other_participant, to_message_response, to_message_responses, to_participant
from ..services.streams import conversation_stream, inbox_stream, serve_channel

router = APIRouter(prefix="/messages", tags=["messages"])


async def _push_thread_event(conversation: Conversation, payload: dict[str, Any]) -> None:
    await conversation_stream.send(str(conversation.id), payload)


async def _refresh_inboxes(db: Session, conversation: Conversation) -> None:
    for user_id in (conversation.user1_id, conversation.user2_id):
        await inbox_stream.send(
            str(user_id),
            {
                "type": "conversations_changed",
                "conversation_id": str(conversation.id),
                "unread_count": unread_message_count(db, user_id),
            },
        )


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ConversationListResponse:
    return ConversationListResponse(items=list_conversations(db, user_id=current_user.id))


@router.get("/conversations/with/{user_id}", response_model=ConversationLookupResponse)
async def find_conversation_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ConversationLookupResponse:
    """Return the existing thread with ``user_id`` or ``null`` so the client can start one."""

    other = get_profile_by_id(db, user_id)
    conversation = find_conversation(db, user_id=current_user.id, other_user_id=user_id)
    return ConversationLookupResponse(
        conversation_id=conversation.id if conversation else None,
        other_user=to_participant(other),
    )


@router.post("/conversations/with/{user_id}", response_model=ConversationLookupResponse)
async def open_conversation_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ConversationLookupResponse:
    conversation = get_or_create_conversation(db, user_id=current_user.id, other_user_id=user_id)
    other = other_participant(db, conversation, current_user.id)
    return ConversationLookupResponse(conversation_id=conversation.id, other_user=to_participant(other))


@router.get("/conversations/{conversation_id}", response_model=MessageThreadResponse)
async def conversation_thread_endpoint(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageThreadResponse:
    conversation = get_conversation_for(db, conversation_id=conversation_id, user_id=current_user.id)
    messages, marked = list_messages(db, conversation=conversation, user_id=current_user.id)
    if marked:
        await _push_thread_event(
            conversation,
            {"type": "messages_read", "conversation_id": str(conversation.id), "reader_id": str(current_user.id)},
        )
        await _refresh_inboxes(db, conversation)
    other = other_participant(db, conversation, current_user.id)
    return MessageThreadResponse(
        conversation_id=conversation.id,
        other_user=to_participant(other),
        messages=to_message_responses(messages),
    )


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation_endpoint(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    conversation = delete_conversation(db, conversation_id=conversation_id, user_id=current_user.id)
    await _push_thread_event(conversation, {"type": "conversation_deleted", "conversation_id": str(conversation_id)})
    await _refresh_inboxes(db, conversation)


@router.post("/attachments", response_model=AttachmentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachments_endpoint(
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
) -> AttachmentUploadResponse:
    return AttachmentUploadResponse(urls=await upload_message_images(files))


@router.post("/send", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
    payload: MessageSendRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageResponse:
    message = send_message(db, sender=current_user, payload=payload)
    response = to_message_response(message)
    conversation = message.conversation
    await _push_thread_event(conversation, {"type": "message_created", "message": response.model_dump(mode="json")})
    await _refresh_inboxes(db, conversation)
    return response


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message_endpoint(
    message_id: UUID,
    payload: MessageEditRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> MessageResponse:
    message = edit_message(db, message_id=message_id, requester_id=current_user.id, content=payload.content)
    response = to_message_response(message)
    await _push_thread_event(message.conversation, {"type": "message_updated", "message": response.model_dump(mode="json")})
    return response


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message_endpoint(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    message: Message = delete_message(db, message_id=message_id, requester_id=current_user.id)
    conversation = db.get(Conversation, message.conversation_id)
    if conversation is None:
        return
    await _push_thread_event(
        conversation,
        {"type": "message_deleted", "conversation_id": str(conversation.id), "message_id": str(message_id)},
    )
    await _refresh_inboxes(db, conversation)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count_endpoint(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=unread_message_count(db, current_user.id))



@router.websocket("/ws")
async def inbox_socket(websocket: WebSocket, token: str = Query(..., alias="token")) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await serve_channel(inbox_stream, str(user_id), websocket)


@router.websocket("/conversations/{conversation_id}/ws")
async def conversation_socket(
    websocket: WebSocket,
    conversation_id: UUID,
    token: str = Query(..., alias="token"),
) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    with session_scope() as db:
        conversation = db.get(Conversation, conversation_id)
        allowed = conversation is not None and conversation.has_participant(user_id)
    if not allowed:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await serve_channel(conversation_stream, str(conversation_id), websocket)
