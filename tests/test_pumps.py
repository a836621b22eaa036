import asyncio
import json
import uuid

import pytest
import pytest_asyncio

from app.realtime import (
    ChatRecord,
    Connection,
    ConnectionState,
    FrameHandler,
    Hub,
    RoutingInstruction,
    outbound_pump,
    serve_connection,
)

from .helpers import FakeChats, FakeMessages, FakeStream, eventually


CHAT = ChatRecord(chat_id="c1", user1_id="1", user2_id="2")

MESSAGE = '{"type":"message","chat_id":"c1","sender_id":"1","content":"hello"}'
TYPING = '{"type":"typing","chat_id":"c1","sender_id":"1"}'


@pytest_asyncio.fixture
async def hub():
    h = Hub()
    h.start()
    yield h
    await h.stop()


@pytest.fixture
def messages():
    return FakeMessages()


@pytest.fixture
def handler(messages):
    return FrameHandler(FakeChats(CHAT), messages)


# FrameHandler


def test_message_is_persisted_and_routed_to_both(handler, messages):
    instruction = handler.handle("1", MESSAGE)

    assert instruction == RoutingInstruction(frozenset({"1", "2"}), MESSAGE)
    assert messages.persisted == [("c1", "1", "hello", None)]


def test_encrypted_key_is_persisted(handler, messages):
    raw = json.dumps(
        {"type": "message", "chat_id": "c1", "sender_id": "2", "content": "x", "encrypted_key": "k"}
    )
    instruction = handler.handle("2", raw)

    assert instruction is not None
    assert messages.persisted == [("c1", "2", "x", "k")]


def test_typing_goes_to_counterpart_without_persisting(handler, messages):
    instruction = handler.handle("1", TYPING)

    assert instruction == RoutingInstruction(frozenset({"2"}), TYPING)
    assert messages.persisted == []


def test_offline_goes_to_counterpart(handler):
    raw = '{"type":"offline","chat_id":"c1","sender_id":"2"}'
    assert handler.handle("2", raw) == RoutingInstruction(frozenset({"1"}), raw)


def test_payload_is_forwarded_verbatim(handler):
    raw = '{"type":"typing", "chat_id":"c1", "sender_id":"1", "extra":{"a":[1,2]}}'
    assert handler.handle("1", raw).payload == raw


@pytest.mark.parametrize(
    "raw",
    [
        "garbage",
        '{"type":"message"}',
        '{"type":"presence","chat_id":"c1","sender_id":"1"}',
        '{"type":"message","chat_id":"c1","sender_id":"1","content":""}',
        '{"type":"message","chat_id":"c1","sender_id":"1"}',
    ],
)
def test_unroutable_frames_are_dropped(handler, messages, raw):
    assert handler.handle("1", raw) is None
    assert messages.persisted == []


def test_frame_claiming_another_sender_is_dropped(handler, messages):
    assert handler.handle("2", MESSAGE) is None
    assert messages.persisted == []


def test_unknown_chat_is_dropped():
    handler = FrameHandler(FakeChats(), FakeMessages())
    assert handler.handle("1", TYPING) is None


def test_non_member_is_dropped():
    handler = FrameHandler(FakeChats(CHAT), FakeMessages())
    raw = '{"type":"typing","chat_id":"c1","sender_id":"3"}'
    assert handler.handle("3", raw) is None


def test_persist_failure_drops_message():
    handler = FrameHandler(FakeChats(CHAT), FakeMessages(fail=True))
    assert handler.handle("1", MESSAGE) is None


def test_directory_failure_drops_frame():
    handler = FrameHandler(FakeChats(CHAT, fail=True), FakeMessages())
    assert handler.handle("1", TYPING) is None


# Pumps


async def _serve(hub, handler, identity, stream=None):
    stream = stream or FakeStream()
    task = asyncio.create_task(serve_connection(stream, identity, hub, handler))
    return stream, task


@pytest.mark.asyncio
async def test_message_reaches_both_members(hub, handler, messages):
    alice, alice_task = await _serve(hub, handler, "1")
    bob, bob_task = await _serve(hub, handler, "2")
    await eventually(lambda: hub.is_connected("2"))
    await eventually(lambda: hub.is_connected("1"))

    alice.feed(MESSAGE)

    await eventually(lambda: alice.sent and bob.sent)
    assert alice.sent == [MESSAGE]
    assert bob.sent == [MESSAGE]
    assert len(messages.persisted) == 1

    alice.hang_up()
    bob.hang_up()
    await asyncio.gather(alice_task, bob_task)


@pytest.mark.asyncio
async def test_typing_reaches_counterpart_only(hub, handler, messages):
    alice, alice_task = await _serve(hub, handler, "1")
    bob, bob_task = await _serve(hub, handler, "2")
    await eventually(lambda: hub.is_connected("1"))
    await eventually(lambda: hub.is_connected("2"))

    alice.feed(TYPING)
    await eventually(lambda: bob.sent)
    # Frames for one connection are written in order, so the next thing
    # alice sees is her own message
    alice.feed(MESSAGE)
    await eventually(lambda: alice.sent)

    assert bob.sent[0] == TYPING
    assert alice.sent == [MESSAGE]
    assert len(messages.persisted) == 1

    alice.hang_up()
    bob.hang_up()
    await asyncio.gather(alice_task, bob_task)


@pytest.mark.asyncio
async def test_bad_frames_do_not_end_the_session(hub, handler):
    alice, alice_task = await _serve(hub, handler, "1")
    await eventually(lambda: hub.is_connected("1"))

    alice.feed("not json")
    alice.feed('{"type":"presence","chat_id":"c1","sender_id":"1"}')
    alice.feed('{"type":"typing","chat_id":"unknown","sender_id":"1"}')
    alice.feed(MESSAGE)

    await eventually(lambda: alice.sent)
    assert alice.sent == [MESSAGE]
    assert not alice_task.done()

    alice.hang_up()
    await alice_task


@pytest.mark.asyncio
async def test_disconnect_unregisters_and_closes(hub, handler):
    alice, alice_task = await _serve(hub, handler, "1")
    await eventually(lambda: hub.is_connected("1"))

    alice.hang_up()
    connection = await alice_task

    assert connection.state is ConnectionState.CLOSED
    assert connection.outbound_closed
    assert alice.closed
    assert not await hub.is_connected("1")


@pytest.mark.asyncio
async def test_new_session_displaces_old_one(hub, handler):
    first, first_task = await _serve(hub, handler, "1")
    await eventually(lambda: hub.is_connected("1"))
    second, second_task = await _serve(hub, handler, "1")

    await asyncio.wait_for(first_task, timeout=1.0)
    assert first.closed
    assert await hub.is_connected("1")
    assert not second.closed

    second.feed(MESSAGE)
    await eventually(lambda: second.sent)
    assert first.sent == []

    second.hang_up()
    await second_task


@pytest.mark.asyncio
async def test_write_failure_closes_the_connection(hub, handler):
    alice, alice_task = await _serve(hub, handler, "1")
    await eventually(lambda: hub.is_connected("1"))
    alice.fail_writes = True

    await hub.route(RoutingInstruction(frozenset({"1"}), MESSAGE))

    await asyncio.wait_for(alice_task, timeout=1.0)
    assert alice.closed
    assert not await hub.is_connected("1")


@pytest.mark.asyncio
async def test_hub_stop_ends_sessions(handler):
    h = Hub()
    h.start()
    alice, alice_task = await _serve(h, handler, "1")
    await eventually(lambda: h.is_connected("1"))

    await h.stop()

    connection = await asyncio.wait_for(alice_task, timeout=1.0)
    assert connection.state is ConnectionState.CLOSED
    assert alice.closed


@pytest.mark.asyncio
async def test_outbound_pump_drains_before_closing():
    stream = FakeStream()
    connection = Connection("1", stream)
    connection.offer("a")
    connection.offer("b")
    connection.close_outbound()

    await outbound_pump(connection)

    assert stream.sent == ["a", "b"]
    assert stream.closed


def test_message_without_content_is_malformed_and_not_stored(handler, messages):
    for raw in (
        '{"type":"message","chat_id":"c1","sender_id":"1","content":""}',
        '{"type":"message","chat_id":"c1","sender_id":"1"}',
    ):
        assert handler.handle("1", raw) is None
    assert messages.persisted == []


@pytest.mark.parametrize("spelling", [str.upper, lambda u: "{" + u + "}", lambda u: u.replace("-", "")])
def test_sender_uuid_in_any_spelling_matches_identity(spelling):
    alice = str(uuid.uuid4())
    bob = str(uuid.uuid4())
    messages = FakeMessages()
    handler = FrameHandler(FakeChats(ChatRecord("c1", alice, bob)), messages)
    raw = json.dumps({"type": "message", "chat_id": "c1", "sender_id": spelling(alice), "content": "hi"})

    instruction = handler.handle(alice, raw)

    assert instruction == RoutingInstruction(frozenset({alice, bob}), raw)
    assert messages.persisted == [("c1", alice, "hi", None)]


def test_non_uuid_sender_on_uuid_connection_is_dropped():
    alice = str(uuid.uuid4())
    messages = FakeMessages()
    handler = FrameHandler(FakeChats(ChatRecord("c1", alice, str(uuid.uuid4()))), messages)
    raw = json.dumps({"type": "message", "chat_id": "c1", "sender_id": "alice", "content": "hi"})

    assert handler.handle(alice, raw) is None
    assert messages.persisted == []
