import secrets
import string
import time

_BASE36 = string.digits + string.ascii_lowercase

MESSAGE = "msg"
GROUP = "group"
GROUP_MEMBER = "gm"
GROUP_CONVERSATION = "gconv"


def _random_base36(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def new_id(prefix: str) -> str:
    """Return ``{prefix}_{epoch_ms}_{9 random base36 chars}``.

    Uniqueness is probabilistic: two ids minted in the same millisecond
    differ only by their random suffix.
    """
    return f"{prefix}_{int(time.time() * 1000)}_{_random_base36()}"


def conversation_id(owner: str, contact: str) -> str:
    # Ordered: (a, b) and (b, a) are different conversations.
    return f"conv_{owner}_{contact}"


def image_id(message_id: str, index: int) -> str:
    return f"img_{message_id}_{index}"
