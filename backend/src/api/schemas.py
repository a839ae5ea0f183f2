from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from services.message import MAX_MESSAGE_LENGTH

AccountId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageRequest(CamelModel):
    sender_account: AccountId
    receiver_account: AccountId
    message: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    message_type: Literal["text", "reply"] = "text"
    reply_to_message_id: str | None = None


class MarkReadRequest(CamelModel):
    user_account: AccountId
    contact_account: AccountId


class CreateGroupRequest(CamelModel):
    group_name: str = Field(min_length=1, max_length=100)
    created_by: AccountId
    description: str | None = None
    member_accounts: list[AccountId] = []


class AddMemberRequest(CamelModel):
    user_account: AccountId
    role: Literal["admin", "member"] = "member"


class MemberRequest(CamelModel):
    user_account: AccountId


class UpdateGroupRequest(CamelModel):
    group_name: str | None = Field(default=None, max_length=100)
    description: str | None = None


class AccountRequest(CamelModel):
    account: AccountId


class ReserveOrderRequest(CamelModel):
    cust_id: str | None = Field(default=None, max_length=50)
    new_case_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = None


class GroupSendRequest(CamelModel):
    sender_account: AccountId
    message: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    message_type: Literal["text", "reply"] = "text"
    reply_to_message_id: str | None = None


def camelize(data: Any) -> Any:
    """snake_case row dicts -> camelCase response payloads (recursive)."""
    if isinstance(data, dict):
        return {to_camel(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(item) for item in data]
    return data
