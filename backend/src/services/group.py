import logging

from sqlalchemy import case, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core import ids
from core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from core.search import LIKE_ESCAPE, contains_pattern
from models import Account, ChatGroup, GroupConversation, GroupMember
from models.group import ADMIN, MEMBER, ROLES

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 100
SEARCH_LIMIT = 50


def _member_count():
    return (
        select(func.count(GroupMember.member_id))
        .where(GroupMember.group_id == ChatGroup.group_id)
        .correlate(ChatGroup)
        .scalar_subquery()
        .label("member_count")
    )


class GroupService:
    """Group lifecycle and membership.

    Every member has exactly one group-conversation row; joining creates it
    (zeroed) and leaving deletes it, in the same transaction. The creator
    is always an admin and can never leave or be removed.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_group(
        self,
        group_name: str,
        created_by: str,
        description: str | None = None,
        member_accounts: list[str] | None = None,
    ) -> dict:
        if not group_name or not group_name.strip():
            raise ValidationError("Group name cannot be empty")
        if len(group_name) > MAX_GROUP_NAME_LENGTH:
            raise ValidationError(
                f"Group name too long (max {MAX_GROUP_NAME_LENGTH} characters)"
            )
        if not created_by:
            raise ValidationError("createdBy is required")

        group_id = ids.new_id(ids.GROUP)
        created_at = (
            await self.db.execute(
                insert(ChatGroup)
                .values(
                    group_id=group_id,
                    group_name=group_name,
                    group_description=description or None,
                    created_by=created_by,
                    created_at=func.current_timestamp(),
                    updated_at=func.current_timestamp(),
                )
                .returning(ChatGroup.created_at)
            )
        ).scalar_one()

        members = [(created_by, ADMIN)]
        seen = {created_by}
        for account in member_accounts or []:
            if account and account not in seen:
                seen.add(account)
                members.append((account, MEMBER))

        await self.db.execute(
            insert(GroupMember).values(
                [
                    {
                        "member_id": ids.new_id(ids.GROUP_MEMBER),
                        "group_id": group_id,
                        "user_account": account,
                        "role": role,
                        "joined_at": created_at,
                    }
                    for account, role in members
                ]
            )
        )
        await self.db.execute(
            insert(GroupConversation).values(
                [
                    {
                        "conversation_id": ids.new_id(ids.GROUP_CONVERSATION),
                        "group_id": group_id,
                        "user_account": account,
                        "last_message": "",
                        "last_message_time": created_at,
                        "unread_count": 0,
                    }
                    for account, _ in members
                ]
            )
        )

        logger.info("Group %s created by %s with %d members", group_id, created_by, len(members))
        return {
            "group_id": group_id,
            "group_name": group_name,
            "group_description": description,
            "created_by": created_by,
            "created_at": created_at,
            "member_count": len(members),
        }

    async def add_member(self, group_id: str, user_account: str, role: str = MEMBER) -> dict:
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        await self._get_creator(group_id)

        existing = await self.db.scalar(
            select(GroupMember.member_id).where(
                GroupMember.group_id == group_id,
                GroupMember.user_account == user_account,
            )
        )
        if existing is not None:
            raise ConflictError("User is already a member of this group")

        joined_at = (
            await self.db.execute(
                insert(GroupMember)
                .values(
                    member_id=ids.new_id(ids.GROUP_MEMBER),
                    group_id=group_id,
                    user_account=user_account,
                    role=role,
                    joined_at=func.current_timestamp(),
                )
                .returning(GroupMember.joined_at)
            )
        ).scalar_one()

        await self.db.execute(
            insert(GroupConversation).values(
                conversation_id=ids.new_id(ids.GROUP_CONVERSATION),
                group_id=group_id,
                user_account=user_account,
                last_message="",
                last_message_time=joined_at,
                unread_count=0,
            )
        )
        logger.info("Added %s to group %s as %s", user_account, group_id, role)
        return {"group_id": group_id, "user_account": user_account, "role": role, "joined_at": joined_at}

    async def remove_member(self, group_id: str, user_account: str) -> None:
        """Remove a member (also used for leaving). The creator cannot be removed."""
        creator = await self._get_creator(group_id)
        if creator == user_account:
            raise PermissionDenied("The group creator cannot be removed or leave the group")

        result = await self.db.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_account == user_account,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("User is not a member of this group")

        await self.db.execute(
            delete(GroupConversation).where(
                GroupConversation.group_id == group_id,
                GroupConversation.user_account == user_account,
            )
        )
        logger.info("Removed %s from group %s", user_account, group_id)

    async def update_group_info(
        self,
        group_id: str,
        group_name: str | None = None,
        description: str | None = None,
    ) -> None:
        changes = {}
        if group_name:
            if len(group_name) > MAX_GROUP_NAME_LENGTH:
                raise ValidationError(
                    f"Group name too long (max {MAX_GROUP_NAME_LENGTH} characters)"
                )
            changes["group_name"] = group_name
        if description is not None:
            changes["group_description"] = description
        if not changes:
            raise ValidationError("Nothing to update")

        changes["updated_at"] = func.current_timestamp()
        result = await self.db.execute(
            update(ChatGroup).where(ChatGroup.group_id == group_id).values(**changes)
        )
        if result.rowcount == 0:
            raise NotFoundError("Group not found")

    async def get_user_groups(self, account: str) -> list[dict]:
        stmt = (
            select(
                ChatGroup.group_id,
                ChatGroup.group_name,
                ChatGroup.group_description,
                ChatGroup.created_by,
                ChatGroup.created_at,
                ChatGroup.updated_at,
                GroupMember.role,
                GroupMember.joined_at,
                GroupConversation.last_message,
                GroupConversation.last_message_time,
                GroupConversation.unread_count,
                _member_count(),
            )
            .join(GroupMember, GroupMember.group_id == ChatGroup.group_id)
            .outerjoin(
                GroupConversation,
                (GroupConversation.group_id == ChatGroup.group_id)
                & (GroupConversation.user_account == account),
            )
            .where(GroupMember.user_account == account)
            .order_by(
                GroupConversation.updated_at.desc().nulls_last(),
                ChatGroup.updated_at.desc(),
            )
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def get_group_details(self, group_id: str) -> dict:
        stmt = (
            select(
                ChatGroup.group_id,
                ChatGroup.group_name,
                ChatGroup.group_description,
                ChatGroup.created_by,
                ChatGroup.created_at,
                ChatGroup.updated_at,
                Account.description.label("creator_name"),
                _member_count(),
            )
            .outerjoin(Account, ChatGroup.created_by == Account.account)
            .where(ChatGroup.group_id == group_id)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        if row is None:
            raise NotFoundError("Group not found")
        return dict(row)

    async def get_group_members(self, group_id: str) -> list[dict]:
        stmt = (
            select(
                GroupMember.member_id,
                GroupMember.group_id,
                GroupMember.user_account,
                GroupMember.role,
                GroupMember.joined_at,
                GroupMember.last_read_message_id,
                Account.description.label("member_name"),
                Account.profile_image_url,
            )
            .outerjoin(Account, GroupMember.user_account == Account.account)
            .where(GroupMember.group_id == group_id)
            .order_by(
                case((GroupMember.role == ADMIN, 0), else_=1),
                GroupMember.joined_at.asc(),
            )
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def search_groups(self, keyword: str) -> list[dict]:
        stmt = (
            select(
                ChatGroup.group_id,
                ChatGroup.group_name,
                ChatGroup.group_description,
                ChatGroup.created_by,
                ChatGroup.created_at,
                ChatGroup.updated_at,
                _member_count(),
            )
            .where(ChatGroup.group_name.ilike(contains_pattern(keyword), escape=LIKE_ESCAPE))
            .order_by(ChatGroup.updated_at.desc())
            .limit(SEARCH_LIMIT)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def get_group_unread_count(self, account: str) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(GroupConversation.unread_count), 0)).where(
                GroupConversation.user_account == account
            )
        )
        return int(total or 0)

    async def _get_creator(self, group_id: str) -> str:
        creator = await self.db.scalar(
            select(ChatGroup.created_by).where(ChatGroup.group_id == group_id)
        )
        if creator is None:
            raise NotFoundError("Group not found")
        return creator
