import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from core.errors import NotFoundError, ValidationError
from services.message import (
    MAX_MESSAGE_LENGTH,
    MessageService,
    image_preview,
    validate_text,
)

STORED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(mock_db, make_result):
    mock_db.execute = AsyncMock(return_value=make_result(scalar_one=STORED_AT))
    return MessageService(mock_db)


async def test_send_text_uses_database_clock(service, mock_db, statements, compile_pg):
    sent = await service.send_text_message("alice", "bob", "hello")

    assert sent.message_id.startswith("msg_")
    assert sent.timestamp == STORED_AT
    assert sent.message_type == "text"
    assert sent.image_count == 0

    (stmt,) = statements(mock_db)
    sql, params = compile_pg(stmt)
    assert "CURRENT_TIMESTAMP" in sql
    assert "RETURNING" in sql
    assert params["sender_account"] == "alice"
    assert params["receiver_account"] == "bob"
    assert params["message_type"] == "text"


async def test_reply_becomes_reply_type(service, mock_db, statements, compile_pg):
    sent = await service.send_text_message("bob", "alice", "yes", reply_to="msg_1_abc")

    assert sent.message_type == "reply"
    _, params = compile_pg(statements(mock_db)[0])
    assert params["reply_to_message_id"] == "msg_1_abc"


@pytest.mark.parametrize("text", ["", "   ", None, "x" * (MAX_MESSAGE_LENGTH + 1)])
async def test_invalid_text_is_rejected(service, mock_db, text):
    with pytest.raises(ValidationError):
        await service.send_text_message("alice", "bob", text)
    mock_db.execute.assert_not_awaited()


async def test_missing_accounts_are_rejected(service, mock_db):
    with pytest.raises(ValidationError):
        await service.send_text_message("alice", "", "hi")
    mock_db.execute.assert_not_awaited()


def test_validate_text_accepts_text_and_reply():
    validate_text("hi", "text")
    validate_text("sure", "reply")


@pytest.mark.parametrize("message_type", ["image", "multi_image", "video"])
def test_text_send_rejects_other_types(message_type):
    with pytest.raises(ValidationError):
        validate_text("", message_type)
    with pytest.raises(ValidationError):
        validate_text("caption", message_type)


async def test_image_type_on_text_send_stores_nothing(service, mock_db):
    with pytest.raises(ValidationError):
        await service.send_text_message("alice", "bob", "", message_type="image")
    mock_db.execute.assert_not_awaited()


def test_image_preview():
    assert image_preview("look", 3) == "look"
    assert image_preview("", 1) == "sent an image"
    assert image_preview(None, 3) == "[3 images]"


async def test_single_image_sets_cover(service, mock_db, statements, compile_pg):
    url = "https://storage.test/a.png"
    sent = await service.send_image_message("alice", "bob", url, caption="cat")

    assert sent.message_type == "image"
    assert sent.image_urls == [url]
    (stmt,) = statements(mock_db)
    _, params = compile_pg(stmt)
    assert params["image_url"] == url
    assert params["image_count"] == 1
    assert params["message"] == "cat"


async def test_multi_image_writes_ordered_child_rows(service, mock_db, statements, compile_pg):
    urls = [f"https://storage.test/{n}.png" for n in range(3)]
    sent = await service.send_multi_image_message("alice", "bob", urls)

    assert sent.message_type == "multi_image"
    assert sent.image_count == 3

    message_stmt, images_stmt = statements(mock_db)
    _, params = compile_pg(message_stmt)
    assert params["image_url"] == urls[0]
    assert params["image_count"] == 3

    images_sql, image_params = compile_pg(images_stmt)
    assert "INSERT INTO app_order.message_images" in images_sql
    orders = sorted(v for k, v in image_params.items() if k.startswith("image_order"))
    assert orders == [0, 1, 2]
    stored_urls = {v for k, v in image_params.items() if k.startswith("image_url")}
    assert stored_urls == set(urls)


async def test_multi_image_needs_images(service, mock_db):
    with pytest.raises(ValidationError):
        await service.send_multi_image_message("alice", "bob", [])
    mock_db.execute.assert_not_awaited()


async def test_get_messages_attaches_images_in_one_query(mock_db, make_result, statements, compile_pg):
    rows = [
        {"message_id": "m1", "message": "hi", "image_count": 0},
        {"message_id": "m2", "message": "", "image_count": 2},
    ]
    images = [
        {"message_id": "m2", "image_url": "u0", "thumbnail_url": "u0", "image_order": 0},
        {"message_id": "m2", "image_url": "u1", "thumbnail_url": "u1", "image_order": 1},
    ]
    mock_db.execute = AsyncMock(
        side_effect=[make_result(mappings=rows), make_result(mappings=images)]
    )

    messages = await MessageService(mock_db).get_messages("alice", "bob")

    assert [m["message_id"] for m in messages] == ["m1", "m2"]
    assert messages[0]["images"] == []
    assert [i["image_url"] for i in messages[1]["images"]] == ["u0", "u1"]

    thread_sql = compile_pg(statements(mock_db)[0])[0]
    assert re.search(r"ORDER BY \S*timestamp\"? ASC", thread_sql)


async def test_get_messages_without_images_skips_lookup(mock_db, make_result):
    mock_db.execute = AsyncMock(
        return_value=make_result(mappings=[{"message_id": "m1", "image_count": 0}])
    )

    await MessageService(mock_db).get_messages("alice", "bob")

    assert mock_db.execute.await_count == 1


async def test_get_message_not_found(mock_db, make_result):
    mock_db.execute = AsyncMock(return_value=make_result(first=None))

    with pytest.raises(NotFoundError):
        await MessageService(mock_db).get_message("msg_missing")
