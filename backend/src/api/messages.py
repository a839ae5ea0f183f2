from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from api.dependencies import get_blob_store, get_database
from api.schemas import MarkReadRequest, SendMessageRequest, camelize
from api.uploads import discard_on_failure, read_image, read_images
from core.database import Database
from services.conversation import ConversationService
from services.message import MessageService, image_preview
from services.read_state import ReadStateService
from storage.blob import BlobStore

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("")
async def get_thread(
    account1: Annotated[str, Query(min_length=1, max_length=50)],
    account2: Annotated[str, Query(min_length=1, max_length=50)],
    database: Database = Depends(get_database),
):
    """Fetch the thread and mark it read for ``account1`` in one transaction."""
    async with database.transaction() as db:
        messages = await MessageService(db).get_messages(account1, account2)
        await ReadStateService(db).mark_as_read(account1, account2)
    return {"success": True, "messages": camelize(messages)}


@router.post("/send")
async def send_message(body: SendMessageRequest, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        sent = await MessageService(db).send_text_message(
            body.sender_account,
            body.receiver_account,
            body.message,
            body.message_type,
            body.reply_to_message_id,
        )
        await ConversationService(db).update_conversations(
            body.sender_account, body.receiver_account, body.message, sent.timestamp
        )
    return {"success": True, "messageId": sent.message_id, "timestamp": sent.timestamp}


@router.post("/send-image")
async def send_image(
    sender_account: Annotated[str, Form(alias="senderAccount", min_length=1, max_length=50)],
    receiver_account: Annotated[str, Form(alias="receiverAccount", min_length=1, max_length=50)],
    image: UploadFile = File(...),
    message: Annotated[str | None, Form()] = None,
    reply_to_message_id: Annotated[str | None, Form(alias="replyToMessageId")] = None,
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    # Upload first: no connection is held while talking to storage.
    image_url = await blob_store.upload(await read_image(image))
    async with discard_on_failure(blob_store, [image_url]):
        async with database.transaction() as db:
            sent = await MessageService(db).send_image_message(
                sender_account, receiver_account, image_url, message, reply_to_message_id
            )
            await ConversationService(db).update_conversations(
                sender_account, receiver_account, image_preview(message, 1), sent.timestamp
            )
    return {
        "success": True,
        "messageId": sent.message_id,
        "imageUrl": image_url,
        "timestamp": sent.timestamp,
    }


@router.post("/send-multi-images")
async def send_multi_images(
    sender_account: Annotated[str, Form(alias="senderAccount", min_length=1, max_length=50)],
    receiver_account: Annotated[str, Form(alias="receiverAccount", min_length=1, max_length=50)],
    images: list[UploadFile] = File(...),
    message: Annotated[str | None, Form()] = None,
    reply_to_message_id: Annotated[str | None, Form(alias="replyToMessageId")] = None,
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    image_urls = await blob_store.upload_many(await read_images(images))
    async with discard_on_failure(blob_store, image_urls):
        async with database.transaction() as db:
            sent = await MessageService(db).send_multi_image_message(
                sender_account, receiver_account, image_urls, message, reply_to_message_id
            )
            await ConversationService(db).update_conversations(
                sender_account,
                receiver_account,
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


@router.put("/read")
async def mark_read(body: MarkReadRequest, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        updated = await ReadStateService(db).mark_as_read(body.user_account, body.contact_account)
    return {"success": True, "updated": updated}


@router.get("/{message_id}/images")
async def message_images(message_id: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        images = await MessageService(db).get_message_images(message_id)
    return {"success": True, "images": camelize(images)}


@router.get("/{message_id}")
async def get_message(message_id: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        message = await MessageService(db).get_message(message_id)
    return {"success": True, "message": camelize(message)}
