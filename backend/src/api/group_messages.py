from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from api.dependencies import get_blob_store, get_database
from api.schemas import GroupSendRequest, MemberRequest, camelize
from api.uploads import discard_on_failure, read_image, read_images
from core.database import Database
from services.conversation import ConversationService
from services.group_message import GroupMessageService
from services.message import image_preview
from services.read_state import ReadStateService
from storage.blob import BlobStore

router = APIRouter(prefix="/api/groups", tags=["group messages"])


@router.get("/{group_id}/messages")
async def get_group_messages(group_id: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        messages = await GroupMessageService(db).get_group_messages(group_id)
    return {"success": True, "messages": camelize(messages)}


@router.post("/{group_id}/messages/send")
async def send_group_message(
    group_id: str, body: GroupSendRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        sent = await GroupMessageService(db).send_group_text_message(
            group_id,
            body.sender_account,
            body.message,
            body.message_type,
            body.reply_to_message_id,
        )
        await ConversationService(db).update_group_conversations(
            group_id, body.sender_account, body.message, sent.timestamp
        )
    return {"success": True, "messageId": sent.message_id, "timestamp": sent.timestamp}


@router.post("/{group_id}/messages/send-image")
async def send_group_image(
    group_id: str,
    sender_account: Annotated[str, Form(alias="senderAccount", min_length=1, max_length=50)],
    image: UploadFile = File(...),
    message: Annotated[str | None, Form()] = None,
    reply_to_message_id: Annotated[str | None, Form(alias="replyToMessageId")] = None,
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    image_url = await blob_store.upload(await read_image(image))
    async with discard_on_failure(blob_store, [image_url]):
        async with database.transaction() as db:
            sent = await GroupMessageService(db).send_group_image_message(
                group_id, sender_account, image_url, message, reply_to_message_id
            )
            await ConversationService(db).update_group_conversations(
                group_id, sender_account, image_preview(message, 1), sent.timestamp
            )
    return {
        "success": True,
        "messageId": sent.message_id,
        "imageUrl": image_url,
        "thumbnailUrl": image_url,
        "timestamp": sent.timestamp,
    }


@router.post("/{group_id}/messages/send-multi-images")
async def send_group_multi_images(
    group_id: str,
    sender_account: Annotated[str, Form(alias="senderAccount", min_length=1, max_length=50)],
    images: list[UploadFile] = File(...),
    message: Annotated[str | None, Form()] = None,
    reply_to_message_id: Annotated[str | None, Form(alias="replyToMessageId")] = None,
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    image_urls = await blob_store.upload_many(await read_images(images))
    async with discard_on_failure(blob_store, image_urls):
        async with database.transaction() as db:
            sent = await GroupMessageService(db).send_group_multi_image_message(
                group_id, sender_account, image_urls, message, reply_to_message_id
            )
            await ConversationService(db).update_group_conversations(
                group_id,
                sender_account,
                image_preview(message, sent.image_count),
                sent.timestamp,
            )
    return {
        "success": True,
        "messageId": sent.message_id,
        "imageUrls": sent.image_urls,
        "imageCount": sent.image_count,
        "timestamp": sent.timestamp,
    }


@router.put("/{group_id}/messages/read")
async def mark_group_read(
    group_id: str, body: MemberRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        await ReadStateService(db).mark_group_as_read(group_id, body.user_account)
    return {"success": True, "message": "Marked as read"}
