import re

from core import ids


def test_new_id_format():
    value = ids.new_id(ids.MESSAGE)
    assert re.fullmatch(r"msg_\d{13}_[0-9a-z]{9}", value)


def test_new_ids_differ():
    values = {ids.new_id(ids.GROUP) for _ in range(200)}
    assert len(values) == 200


def test_conversation_id_is_ordered():
    assert ids.conversation_id("alice", "bob") == "conv_alice_bob"
    assert ids.conversation_id("alice", "bob") != ids.conversation_id("bob", "alice")


def test_image_id():
    assert ids.image_id("msg_1_abc", 2) == "img_msg_1_abc_2"
