from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_database
from api.schemas import camelize
from core.database import Database
from services.conversation import ConversationService

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

AccountPath = Annotated[str, Path(min_length=1, max_length=50)]


@router.get("/unread/count/{account}")
async def unread_count(account: AccountPath, database: Database = Depends(get_database)):
    async with database.session() as db:
        count = await ConversationService(db).get_unread_count(account)
    return {"success": True, "count": count}


@router.get("/{account}")
async def list_conversations(account: AccountPath, database: Database = Depends(get_database)):
    async with database.session() as db:
        conversations = await ConversationService(db).get_conversations(account)
    return {"success": True, "conversations": camelize(conversations)}


@router.delete("")
async def delete_conversation(
    user_account: Annotated[str, Query(alias="userAccount", min_length=1, max_length=50)],
    contact_account: Annotated[str, Query(alias="contactAccount", min_length=1, max_length=50)],
    database: Database = Depends(get_database),
):
    async with database.transaction() as db:
        deleted = await ConversationService(db).delete_conversation(user_account, contact_account)
    return {"success": True, "deletedMessages": deleted}
