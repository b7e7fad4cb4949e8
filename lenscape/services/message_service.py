"""One-to-one conversations and the messages exchanged in them."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..constants import LAST_MESSAGE_PREVIEW_CHARS, MAX_IMAGES_PER_SEND, PHOTO_PLACEHOLDER
from ..models import Conversation, Message, User
from ..schemas import ConversationParticipant, ConversationResponse, MessageResponse, MessageSendRequest
from . import spaces_service
from .formatting import conversation_time_label, initials, needs_date_divider

logger = logging.getLogger(__name__)


def canonical_pair(first: UUID, second: UUID) -> tuple[UUID, UUID]:
    """Order a participant pair so each conversation is stored exactly once."""

    return (first, second) if first < second else (second, first)


def preview_text(content: str | None, images: Sequence[str] | None) -> str:
    text = (content or "").strip()
    has_images = bool(images)
    if text and has_images:
        preview = f"{text} 📷"
    elif has_images:
        preview = PHOTO_PLACEHOLDER
    else:
        preview = text
    return preview[:LAST_MESSAGE_PREVIEW_CHARS]


def to_participant(user: User) -> ConversationParticipant:
    return ConversationParticipant(
        id=user.id,
        display_name=user.display_name or user.full_name,
        username=user.username,
        avatar_url=user.avatar_url,
        user_type=user.user_type,
        initials=initials(user.name_for_display),
    )


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc


def get_conversation_for(db: Session, *, conversation_id: UUID, user_id: UUID) -> Conversation:
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if not conversation.has_participant(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant in this conversation")
    return conversation


def find_conversation(db: Session, *, user_id: UUID, other_user_id: UUID) -> Conversation | None:
    first, second = canonical_pair(user_id, other_user_id)
    stmt = select(Conversation).where(Conversation.user1_id == first, Conversation.user2_id == second)
    return db.scalar(stmt)


def get_or_create_conversation(db: Session, *, user_id: UUID, other_user_id: UUID) -> Conversation:
    if user_id == other_user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot message yourself")
    if db.get(User, other_user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = find_conversation(db, user_id=user_id, other_user_id=other_user_id)
    if existing is not None:
        return existing

    first, second = canonical_pair(user_id, other_user_id)
    conversation = Conversation(user1_id=first, user2_id=second)
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        # Both sides opened the thread at the same time.
        db.rollback()
        existing = find_conversation(db, user_id=user_id, other_user_id=other_user_id)
        if existing is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to open conversation")
        return existing
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create conversation")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to open conversation") from exc

    db.refresh(conversation)
    logger.info("Opened conversation %s", conversation.id)
    return conversation


def list_conversations(db: Session, *, user_id: UUID, now: datetime | None = None) -> list[ConversationResponse]:
    stmt = (
        select(Conversation)
        .where(or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id))
        .options(selectinload(Conversation.user1), selectinload(Conversation.user2))
        .order_by(Conversation.last_message_at.is_(None), Conversation.last_message_at.desc())
    )
    conversations = list(db.scalars(stmt))

    unread_rows = db.execute(
        select(Message.conversation_id, func.count(Message.id))
        .where(Message.receiver_id == user_id, Message.is_read.is_(False))
        .group_by(Message.conversation_id)
    ).all()
    unread = {conversation_id: int(count) for conversation_id, count in unread_rows}

    items: list[ConversationResponse] = []
    for conversation in conversations:
        other = conversation.user2 if conversation.user1_id == user_id else conversation.user1
        if other is None:
            continue
        items.append(
            ConversationResponse(
                id=conversation.id,
                other_user=to_participant(other),
                last_message=conversation.last_message,
                last_message_at=conversation.last_message_at,
                time_label=conversation_time_label(conversation.last_message_at, now=now),
                unread_count=unread.get(conversation.id, 0),
            )
        )
    return items


def other_participant(db: Session, conversation: Conversation, user_id: UUID) -> User:
    other = db.get(User, conversation.other_participant_id(user_id))
    if other is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return other


def list_messages(db: Session, *, conversation: Conversation, user_id: UUID) -> tuple[list[Message], int]:
    """Return messages newest first and mark the ones addressed to ``user_id`` as read."""

    result = db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation.id,
            Message.receiver_id == user_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    marked = int(result.rowcount or 0)
    _commit(db, "Failed to mark messages as read")

    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(db.scalars(stmt)), marked


def to_message_responses(messages: Sequence[Message], *, now: datetime | None = None) -> list[MessageResponse]:
    """Serialize newest-first messages, flagging the first message of each calendar day."""

    responses: list[MessageResponse] = []
    for index, message in enumerate(messages):
        older = messages[index + 1] if index + 1 < len(messages) else None
        responses.append(
            to_message_response(
                message,
                now=now,
                show_date_divider=needs_date_divider(message.created_at, older.created_at if older else None),
            )
        )
    return responses


def to_message_response(message: Message, *, now: datetime | None = None, show_date_divider: bool = False) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        content=message.content,
        images=[item for item in (message.images or []) if isinstance(item, str)],
        is_read=bool(message.is_read),
        reply_to_id=message.reply_to_id,
        reply_to_content=message.reply_to_content,
        edited_at=message.edited_at,
        created_at=message.created_at,
        time_label=conversation_time_label(message.created_at, now=now),
        show_date_divider=show_date_divider,
    )


async def upload_message_images(files: Iterable[UploadFile]) -> list[str]:
    uploads = [item for item in files if item is not None and item.filename]
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
    if len(uploads) > MAX_IMAGES_PER_SEND:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You can attach at most {MAX_IMAGES_PER_SEND} images",
        )
    for upload in uploads:
        if not spaces_service.is_image_upload(upload):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files can be attached")
    urls: list[str] = []
    for upload in uploads:
        result = await spaces_service.store_upload(upload, folder="messages")
        urls.append(result.url)
    return urls


def send_message(db: Session, *, sender: User, payload: MessageSendRequest) -> Message:
    """Persist a message and refresh the conversation preview."""

    images = [url.strip() for url in payload.images if url and url.strip()]
    text = (payload.content or "").strip()
    if not text and not images:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message requires text or images")

    if payload.conversation_id is not None:
        conversation = get_conversation_for(db, conversation_id=payload.conversation_id, user_id=sender.id)
        if payload.recipient_id is not None and not conversation.has_participant(payload.recipient_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Recipient is not in this conversation")
    elif payload.recipient_id is not None:
        conversation = get_or_create_conversation(db, user_id=sender.id, other_user_id=payload.recipient_id)
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="recipient_id or conversation_id required")

    reply_to_content: str | None = None
    if payload.reply_to_id is not None:
        parent = db.get(Message, payload.reply_to_id)
        if parent is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reply target not found")
        if parent.conversation_id != conversation.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reply must stay within the same conversation")
        reply_to_content = parent.content

    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender.id,
        receiver_id=conversation.other_participant_id(sender.id),
        content=text or PHOTO_PLACEHOLDER,
        images=images or None,
        reply_to_id=payload.reply_to_id,
        reply_to_content=reply_to_content,
        created_at=now,
    )
    conversation.last_message = preview_text(text, images)
    conversation.last_message_at = now
    db.add(message)
    _commit(db, "Failed to persist message")
    db.refresh(message)
    return message


def _get_own_message(db: Session, *, message_id: UUID, requester_id: UUID) -> Message:
    message = db.get(Message, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.sender_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only change your own messages")
    return message


def edit_message(db: Session, *, message_id: UUID, requester_id: UUID, content: str) -> Message:
    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message cannot be empty")
    message = _get_own_message(db, message_id=message_id, requester_id=requester_id)
    message.content = text
    message.edited_at = datetime.now(timezone.utc)
    _commit(db, "Failed to edit message")
    db.refresh(message)
    return message


def _refresh_preview(db: Session, conversation: Conversation) -> None:
    latest = db.scalar(
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.desc())
        .limit(1)
    )
    if latest is None:
        conversation.last_message = None
        conversation.last_message_at = None
    else:
        text = "" if latest.content == PHOTO_PLACEHOLDER and latest.images else latest.content
        conversation.last_message = preview_text(text, latest.images)
        conversation.last_message_at = latest.created_at


def delete_message(db: Session, *, message_id: UUID, requester_id: UUID) -> Message:
    message = _get_own_message(db, message_id=message_id, requester_id=requester_id)
    conversation = message.conversation
    db.delete(message)
    db.flush()
    if conversation is not None:
        _refresh_preview(db, conversation)
    _commit(db, "Failed to delete message")
    return message


def delete_conversation(db: Session, *, conversation_id: UUID, user_id: UUID) -> Conversation:
    conversation = get_conversation_for(db, conversation_id=conversation_id, user_id=user_id)
    db.execute(delete(Message).where(Message.conversation_id == conversation.id))
    db.delete(conversation)
    _commit(db, "Failed to delete conversation")
    logger.info("Conversation %s deleted by %s", conversation_id, user_id)
    return conversation


def unread_message_count(db: Session, user_id: UUID) -> int:
    stmt = select(func.count(Message.id)).where(Message.receiver_id == user_id, Message.is_read.is_(False))
    return int(db.scalar(stmt) or 0)


__all__ = [
    "canonical_pair",
    "preview_text",
    "to_participant",
    "get_conversation_for",
    "find_conversation",
    "get_or_create_conversation",
    "list_conversations",
    "other_participant",
    "list_messages",
    "to_message_response",
    "to_message_responses",
    "upload_message_images",
    "send_message",
    "edit_message",
    "delete_message",
    "delete_conversation",
    "unread_message_count",
]
