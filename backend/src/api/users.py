from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_database
from core.database import Database
from services.user import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/search")
async def search_users(
    q: Annotated[str, Query(min_length=1)],
    exclude_account: Annotated[str, Query(alias="excludeAccount")] = "",
    database: Database = Depends(get_database),
):
    """Find people to start a conversation with (the caller is excluded)."""
    async with database.session() as db:
        rows = await UserService(db).search_users(q, exclude_account)
    return {
        "success": True,
        "users": [
            {
                "account": row["account"],
                "accountName": row["description"],
                "customerId": row["customer_id"],
                "profileImageUrl": row["profile_image_url"],
            }
            for row in rows
        ],
    }
