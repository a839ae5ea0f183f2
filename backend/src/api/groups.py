from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_database
from api.schemas import (
    AddMemberRequest,
    CreateGroupRequest,
    MemberRequest,
    UpdateGroupRequest,
    camelize,
)
from core.database import Database
from services.group import GroupService

router = APIRouter(prefix="/api/groups", tags=["groups"])

AccountPath = Annotated[str, Path(min_length=1, max_length=50)]


@router.post("/create")
async def create_group(body: CreateGroupRequest, database: Database = Depends(get_database)):
    async with database.transaction() as db:
        group = await GroupService(db).create_group(
            body.group_name, body.created_by, body.description, body.member_accounts
        )
    return {"success": True, "message": "Group created", "group": camelize(group)}


# Fixed paths first so they are not captured by /{group_id}.
@router.get("/user/{account}")
async def user_groups(account: AccountPath, database: Database = Depends(get_database)):
    async with database.session() as db:
        groups = await GroupService(db).get_user_groups(account)
    return {"success": True, "groups": camelize(groups)}


@router.get("/search")
async def search_groups(
    q: Annotated[str, Query(min_length=1)],
    database: Database = Depends(get_database),
):
    async with database.session() as db:
        groups = await GroupService(db).search_groups(q)
    return {"success": True, "groups": camelize(groups)}


@router.get("/unread/count/{account}")
async def group_unread_count(account: AccountPath, database: Database = Depends(get_database)):
    async with database.session() as db:
        count = await GroupService(db).get_group_unread_count(account)
    return {"success": True, "count": count}


@router.get("/{group_id}")
async def group_details(group_id: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        group = await GroupService(db).get_group_details(group_id)
    return {"success": True, "group": camelize(group)}


@router.get("/{group_id}/members")
async def group_members(group_id: str, database: Database = Depends(get_database)):
    async with database.session() as db:
        members = await GroupService(db).get_group_members(group_id)
    return {"success": True, "members": camelize(members)}


@router.post("/{group_id}/members/add")
async def add_member(
    group_id: str, body: AddMemberRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        await GroupService(db).add_member(group_id, body.user_account, body.role)
    return {"success": True, "message": "Member added"}


@router.delete("/{group_id}/members/remove")
async def remove_member(
    group_id: str, body: MemberRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        await GroupService(db).remove_member(group_id, body.user_account)
    return {"success": True, "message": "Member removed"}


@router.post("/{group_id}/leave")
async def leave_group(
    group_id: str, body: MemberRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        await GroupService(db).remove_member(group_id, body.user_account)
    return {"success": True, "message": "Left the group"}


@router.put("/{group_id}/update")
async def update_group(
    group_id: str, body: UpdateGroupRequest, database: Database = Depends(get_database)
):
    async with database.transaction() as db:
        await GroupService(db).update_group_info(group_id, body.group_name, body.description)
    return {"success": True, "message": "Group updated"}
