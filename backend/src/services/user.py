from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from core.search import LIKE_ESCAPE, contains_pattern
from models import Account

SEARCH_LIMIT = 20


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def search_users(self, keyword: str, exclude_account: str = "") -> list[dict]:
        """Match on account id or display name; the caller is left out."""
        pattern = contains_pattern(keyword)
        stmt = (
            select(
                Account.account,
                Account.description,
                Account.customer_id,
                Account.profile_image_url,
            )
            .where(
                or_(
                    Account.account.ilike(pattern, escape=LIKE_ESCAPE),
                    Account.description.ilike(pattern, escape=LIKE_ESCAPE),
                ),
                Account.account != exclude_account,
            )
            .order_by(Account.description)
            .limit(SEARCH_LIMIT)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def get_profile_image_url(self, account: str) -> str | None:
        result = await self.db.execute(
            select(Account.profile_image_url).where(Account.account == account)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Account not found")
        return row.profile_image_url

    async def set_profile_image_url(self, account: str, url: str | None) -> None:
        result = await self.db.execute(
            update(Account)
            .where(Account.account == account)
            .values(profile_image_url=url)
        )
        if result.rowcount == 0:
            raise NotFoundError("Account not found")
