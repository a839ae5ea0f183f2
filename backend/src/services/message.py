import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core import ids
from core.errors import NotFoundError, ValidationError
from models import Account, Message, MessageImage
from models.message import IMAGE, MULTI_IMAGE, REPLY, TEXT

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000


@dataclass
class SentMessage:
    message_id: str
    timestamp: datetime
    message_type: str
    image_urls: list[str] = field(default_factory=list)

    @property
    def image_count(self) -> int:
        return len(self.image_urls)


def image_preview(caption: str | None, image_count: int) -> str:
    """Inbox preview for sends whose text may be empty."""
    if caption:
        return caption
    if image_count == 1:
        return "sent an image"
    return f"[{image_count} images]"


TEXT_TYPES = (TEXT, REPLY)


def validate_text(message: str | None, message_type: str = TEXT) -> None:
    """Checks a text or reply send. Image sends go through their own endpoints."""
    if message_type not in TEXT_TYPES:
        raise ValidationError(f"Unsupported message type for a text send: {message_type}")
    if not message or not message.strip():
        raise ValidationError("Message content cannot be empty")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message too long (max {MAX_MESSAGE_LENGTH} characters)")


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def send_text_message(
        self,
        sender: str,
        receiver: str,
        message: str,
        message_type: str = TEXT,
        reply_to: str | None = None,
    ) -> SentMessage:
        if not sender or not receiver:
            raise ValidationError("senderAccount and receiverAccount are required")
        validate_text(message, message_type)
        if reply_to and message_type == TEXT:
            message_type = REPLY
        return await self._insert_message(
            sender_account=sender,
            receiver_account=receiver,
            message=message,
            message_type=message_type,
            reply_to_message_id=reply_to,
        )

    async def send_image_message(
        self,
        sender: str,
        receiver: str,
        image_url: str,
        caption: str | None = None,
        reply_to: str | None = None,
    ) -> SentMessage:
        if not sender or not receiver:
            raise ValidationError("senderAccount and receiverAccount are required")
        return await self._insert_message(
            sender_account=sender,
            receiver_account=receiver,
            message=caption or "",
            message_type=IMAGE,
            image_urls=[image_url],
            reply_to_message_id=reply_to,
        )

    async def send_multi_image_message(
        self,
        sender: str,
        receiver: str,
        image_urls: list[str],
        caption: str | None = None,
        reply_to: str | None = None,
    ) -> SentMessage:
        if not sender or not receiver:
            raise ValidationError("senderAccount and receiverAccount are required")
        if not image_urls:
            raise ValidationError("At least one image is required")
        return await self._insert_message(
            sender_account=sender,
            receiver_account=receiver,
            message=caption or "",
            message_type=MULTI_IMAGE,
            image_urls=image_urls,
            reply_to_message_id=reply_to,
        )

    async def get_messages(self, account1: str, account2: str) -> list[dict]:
        """All messages between the pair (either direction), oldest first."""
        stmt = self._thread_query().where(
            or_(
                and_(Message.sender_account == account1, Message.receiver_account == account2),
                and_(Message.sender_account == account2, Message.receiver_account == account1),
            )
        )
        result = await self.db.execute(stmt)
        return await self._with_images([dict(row) for row in result.mappings().all()])

    async def get_message(self, message_id: str) -> dict:
        sender = aliased(Account)
        receiver = aliased(Account)
        stmt = (
            select(
                Message,
                sender.description.label("sender_name"),
                receiver.description.label("receiver_name"),
            )
            .outerjoin(sender, Message.sender_account == sender.account)
            .outerjoin(receiver, Message.receiver_account == receiver.account)
            .where(Message.message_id == message_id)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            raise NotFoundError("Message not found")
        message, sender_name, receiver_name = row
        data = {c.key: getattr(message, c.key) for c in Message.__table__.columns}
        data["sender_name"] = sender_name
        data["receiver_name"] = receiver_name
        return (await self._with_images([data]))[0]

    async def get_message_images(self, message_id: str) -> list[dict]:
        result = await self.db.execute(
            select(
                MessageImage.image_id,
                MessageImage.message_id,
                MessageImage.image_url,
                MessageImage.thumbnail_url,
                MessageImage.image_order,
            )
            .where(MessageImage.message_id == message_id)
            .order_by(MessageImage.image_order.asc())
        )
        return [dict(row) for row in result.mappings().all()]

    async def _insert_message(self, image_urls: list[str] | None = None, **values) -> SentMessage:
        image_urls = list(image_urls or [])
        message_id = ids.new_id(ids.MESSAGE)
        cover = image_urls[0] if image_urls else None

        stmt = (
            insert(Message)
            .values(
                message_id=message_id,
                image_url=cover,
                thumbnail_url=cover,
                image_count=len(image_urls),
                # Database clock, never the client's.
                timestamp=func.current_timestamp(),
                **values,
            )
            .returning(Message.timestamp)
        )
        timestamp = (await self.db.execute(stmt)).scalar_one()

        if values.get("message_type") == MULTI_IMAGE:
            await self.db.execute(
                insert(MessageImage).values(
                    [
                        {
                            "image_id": ids.image_id(message_id, order),
                            "message_id": message_id,
                            "image_url": url,
                            "thumbnail_url": url,
                            "image_order": order,
                        }
                        for order, url in enumerate(image_urls)
                    ]
                )
            )

        logger.info(
            "Stored %s message %s from %s", values.get("message_type"), message_id,
            values.get("sender_account"),
        )
        return SentMessage(
            message_id=message_id,
            timestamp=timestamp,
            message_type=values.get("message_type", TEXT),
            image_urls=image_urls,
        )

    def _thread_query(self):
        reply = aliased(Message)
        reply_sender = aliased(Account)
        return (
            select(
                Message.message_id,
                Message.sender_account,
                Message.receiver_account,
                Message.group_id,
                Message.is_group_message,
                Message.message,
                Message.message_type,
                Message.image_url,
                Message.thumbnail_url,
                Message.image_count,
                Message.reply_to_message_id,
                Message.timestamp,
                Message.is_read,
                Message.read_at,
                reply.message.label("reply_to_message"),
                reply.image_url.label("reply_to_image_url"),
                reply.sender_account.label("reply_to_sender"),
                reply_sender.description.label("reply_to_sender_name"),
            )
            .outerjoin(reply, Message.reply_to_message_id == reply.message_id)
            .outerjoin(reply_sender, reply.sender_account == reply_sender.account)
            .order_by(Message.timestamp.asc())
        )

    async def _with_images(self, messages: list[dict]) -> list[dict]:
        """Attach ordered ``images`` to each message; one query for the whole page."""
        wanted = [m["message_id"] for m in messages if (m.get("image_count") or 0) > 0]
        by_message: dict[str, list[dict]] = defaultdict(list)
        if wanted:
            result = await self.db.execute(
                select(
                    MessageImage.message_id,
                    MessageImage.image_url,
                    MessageImage.thumbnail_url,
                    MessageImage.image_order,
                )
                .where(MessageImage.message_id.in_(wanted))
                .order_by(MessageImage.message_id, MessageImage.image_order.asc())
            )
            for row in result.mappings().all():
                image = dict(row)
                by_message[image.pop("message_id")].append(image)

        for m in messages:
            m["images"] = by_message.get(m["message_id"], [])
        return messages
