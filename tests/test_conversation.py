import pytest

from chatdesk.core.session_hub import build_hub
from chatdesk.models.events import StepPayload
from chatdesk.models.records import SenderRole
from chatdesk.storage import Collection

from conftest import FakeWebSocket, frame, run

SNAPSHOT_EVENTS = ["steps_list_ordered", "gallery_data", "update_chat_list", "global_settings"]


def bot_messages(store, chat_id):
    return store.find(Collection.MESSAGES, {"chat_id": chat_id, "sender": SenderRole.BOT})


def test_client_init_new_chat_gets_empty_history_then_opening_message(hub, store, add_step):
    add_step("start", question="Hi!")
    ws = FakeWebSocket()

    async def scenario():
        conn = hub.connect(ws)
        assert await hub.dispatch(conn, frame("client_init", "c1"))

    run(scenario())

    assert ws.events() == ["history", "gallery_data", "receive_message"] + SNAPSHOT_EVENTS
    assert ws.data_for("history") == [[]]
    opening = ws.data_for("receive_message")[0]
    assert (opening["sender"], opening["text"], opening["chatId"]) == ("bot", "Hi!", "c1")

    assert store.count(Collection.CHATS, {"chat_id": "c1"}) == 1
    assert len(bot_messages(store, "c1")) == 1
    assert hub.repos.chats.get("c1").current_step == "start"


def test_client_init_without_active_start_step_is_silent(hub, store, add_step):
    add_step("start", question="Hi!", active=False)
    ws = FakeWebSocket()

    async def scenario():
        await hub.dispatch(hub.connect(ws), frame("client_init", "c1"))

    run(scenario())

    assert "receive_message" not in ws.events()
    assert store.count(Collection.CHATS) == 1
    assert store.count(Collection.MESSAGES) == 0


def test_client_init_existing_chat_replays_history_without_second_opening(hub, store, add_step):
    add_step("start", question="Hi!")
    first, second = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await hub.dispatch(hub.connect(first), frame("client_init", "c1"))
        await hub.dispatch(hub.connect(second), frame("client_init", "c1"))

    run(scenario())

    history = second.data_for("history")[0]
    assert [m["text"] for m in history] == ["Hi!"]
    assert store.count(Collection.MESSAGES) == 1
    assert store.count(Collection.CHATS) == 1


def test_user_message_with_next_step_fires_scripted_reply(hub, store, add_step):
    add_step("step2", question="Pick a plan", options=[{"text": "Basic", "nextStep": "basic"}])
    ws = FakeWebSocket()

    async def scenario():
        conn = hub.connect(ws)
        await hub.dispatch(conn, frame("client_init", "c1"))
        ws.clear()
        await hub.dispatch(
            conn,
            frame("send_message", {"chatId": "c1", "sender": "user", "text": "2", "nextStep": "step2"}),
        )
        await hub.scheduler.drain()

    run(scenario())

    replies = bot_messages(store, "c1")
    assert len(replies) == 1
    assert replies[0].text == "Pick a plan"
    assert replies[0].options[0]["nextStep"] == "basic"
    assert hub.repos.chats.get("c1").current_step == "step2"

    texts = [m["text"] for m in ws.data_for("receive_message")]
    assert texts == ["2", "Pick a plan"]
    # One refresh for the user message, one after the scripted reply.
    assert ws.events().count("update_chat_list") == 2


def test_inactive_next_step_produces_no_reply(hub, store, add_step):
    add_step("step2", question="Pick a plan", active=False)

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("client_init", "c1"))
        await hub.dispatch(
            conn,
            frame("send_message", {"chatId": "c1", "sender": "user", "text": "2", "nextStep": "step2"}),
        )
        await hub.scheduler.drain()

    run(scenario())

    assert bot_messages(store, "c1") == []
    assert hub.repos.chats.get("c1").current_step == "start"


def test_scripts_disabled_globally_blocks_scripted_reply(hub, store, add_step):
    add_step("step2", question="Pick a plan")

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("toggle_all_scripts", False))
        await hub.dispatch(
            conn,
            frame("send_message", {"chatId": "c1", "sender": "user", "text": "2", "nextStep": "step2"}),
        )
        await hub.scheduler.drain()

    run(scenario())

    assert hub.repos.settings.get_or_create().all_scripts_enabled is False
    assert store.count(Collection.SETTINGS) == 1
    assert bot_messages(store, "c1") == []


@pytest.mark.parametrize("sender", ["user", "manager"])
def test_message_without_next_step_never_fires(hub, store, add_step, sender):
    add_step("start", question="Hi!")

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("send_message", {"chatId": "c1", "sender": sender, "text": "hello"}))
        await hub.scheduler.drain()

    run(scenario())

    assert bot_messages(store, "c1") == []
    assert hub.scheduler.pending() == 0


def test_message_to_unknown_chat_is_stored_without_creating_chat(hub, store):
    async def scenario():
        await hub.dispatch(
            hub.connect(FakeWebSocket()),
            frame("send_message", {"chatId": "ghost", "sender": "user", "text": "hello"}),
        )

    run(scenario())

    assert store.count(Collection.MESSAGES, {"chat_id": "ghost"}) == 1
    assert store.count(Collection.CHATS) == 0


def test_manual_script_fires_inactive_step_immediately(hub, store, add_step):
    add_step("offer", question="20% off today", active=False)
    ws = FakeWebSocket()

    async def scenario():
        conn = hub.connect(ws)
        await hub.dispatch(conn, frame("client_init", "c1"))
        before = hub.repos.chats.get("c1").last_update
        await hub.dispatch(conn, frame("toggle_all_scripts", False))
        await hub.dispatch(conn, frame("send_manual_script", {"chatId": "c1", "stepKey": "offer"}))
        return before

    before = run(scenario())

    replies = bot_messages(store, "c1")
    assert [m.text for m in replies] == ["20% off today"]
    chat = hub.repos.chats.get("c1")
    assert chat.current_step == "offer"
    assert chat.last_update >= before
    assert hub.scheduler.pending() == 0


def test_manual_script_with_unknown_step_is_a_silent_noop(hub, store):
    ws = FakeWebSocket()

    async def scenario():
        conn = hub.connect(ws)
        return await hub.dispatch(conn, frame("send_manual_script", {"chatId": "c1", "stepKey": "nope"}))

    assert run(scenario()) is True
    assert ws.sent == []
    assert store.count(Collection.MESSAGES) == 0


def test_delete_chat_removes_chat_and_all_its_messages(hub, store, add_step):
    add_step("start", question="Hi!")

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        for chat_id in ("c1", "c2"):
            await hub.dispatch(conn, frame("client_init", chat_id))
            await hub.dispatch(conn, frame("send_message", {"chatId": chat_id, "sender": "user", "text": "yo"}))
        await hub.dispatch(conn, frame("delete_chat", "c1"))

    run(scenario())

    assert store.count(Collection.MESSAGES, {"chat_id": "c1"}) == 0
    assert store.count(Collection.CHATS, {"chat_id": "c1"}) == 0
    assert store.count(Collection.MESSAGES, {"chat_id": "c2"}) == 2


def test_delayed_reply_still_fires_after_chat_deleted_by_default(hub, store, add_step):
    add_step("step2", question="Still here?")

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("client_init", "c1"))
        await hub.dispatch(
            conn,
            frame("send_message", {"chatId": "c1", "sender": "user", "text": "x", "nextStep": "step2"}),
        )
        await hub.dispatch(conn, frame("delete_chat", "c1"))
        await hub.scheduler.drain()

    run(scenario())

    # The stale reply lands as an orphan message; no chat is recreated.
    assert [m.text for m in bot_messages(store, "c1")] == ["Still here?"]
    assert store.count(Collection.CHATS) == 0


def test_superseding_keeps_only_the_latest_scripted_reply(store, config):
    hub = build_hub(store, config.model_copy(update={"supersede_pending_scripts": True, "script_reply_delay_s": 0.05}))
    for key, question in [("a", "Answer A"), ("b", "Answer B")]:
        hub.registry.upsert_step(StepPayload(key=key, question=question))

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("client_init", "c1"))
        for key in ("a", "b"):
            await hub.dispatch(
                conn,
                frame("send_message", {"chatId": "c1", "sender": "user", "text": key, "nextStep": key}),
            )
        await hub.scheduler.drain()

    run(scenario())

    assert [m.text for m in bot_messages(store, "c1")] == ["Answer B"]
    assert hub.repos.chats.get("c1").current_step == "b"


def test_superseding_cancels_reply_when_chat_is_deleted(store, config):
    hub = build_hub(store, config.model_copy(update={"supersede_pending_scripts": True, "script_reply_delay_s": 0.05}))
    hub.registry.upsert_step(StepPayload(key="step2", question="Still here?"))

    async def scenario():
        conn = hub.connect(FakeWebSocket())
        await hub.dispatch(conn, frame("client_init", "c1"))
        await hub.dispatch(
            conn,
            frame("send_message", {"chatId": "c1", "sender": "user", "text": "x", "nextStep": "step2"}),
        )
        await hub.dispatch(conn, frame("delete_chat", "c1"))
        await hub.scheduler.drain()

    run(scenario())

    assert store.count(Collection.MESSAGES) == 0
