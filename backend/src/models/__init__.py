from models.base import Base
from models.account import Account
from models.conversation import Conversation
from models.group import ChatGroup, GroupConversation, GroupMember
from models.message import Message, MessageImage
from models.order import ProcessRecord, QoOrder

__all__ = [
    "Base",
    "Account",
    "ChatGroup",
    "Conversation",
    "GroupConversation",
    "GroupMember",
    "Message",
    "MessageImage",
    "ProcessRecord",
    "QoOrder",
]
