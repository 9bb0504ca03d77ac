import logging
from datetime import datetime, timedelta, timezone

from chatdesk.models.records import Message, SenderRole
from chatdesk.storage import Collection

from conftest import FakeWebSocket, run


def test_snapshot_orders_chats_by_recent_activity_and_messages_by_time(hub, add_step):
    add_step("b", order=2)
    add_step("a", order=1)
    repos = hub.repos
    t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

    repos.chats.create("old")
    repos.chats.create("new")
    repos.chats.touch("old", t0)
    repos.chats.touch("new", t0 + timedelta(minutes=5))

    repos.messages.add(Message(chat_id="new", sender=SenderRole.USER, text="second", timestamp=t0 + timedelta(seconds=2)))
    repos.messages.add(Message(chat_id="new", sender=SenderRole.BOT, text="first", timestamp=t0 + timedelta(seconds=1)))
    repos.messages.add(Message(chat_id="gone", sender=SenderRole.USER, text="orphan", timestamp=t0))

    snapshot = hub.broadcaster.build_snapshot()

    assert [s.key for s in snapshot.steps] == ["a", "b"]
    assert [c.chat_id for c in snapshot.chats] == ["new", "old"]
    assert [m.text for m in snapshot.chats[0].messages] == ["first", "second"]
    assert snapshot.chats[1].messages == []
    assert snapshot.settings.all_scripts_enabled is True


def test_snapshot_creates_settings_singleton_once(hub, store):
    hub.broadcaster.build_snapshot()
    hub.broadcaster.build_snapshot()

    assert store.count(Collection.SETTINGS) == 1


def test_wire_form_uses_camel_case_and_record_ids(hub):
    hub.repos.chats.create("c1")
    hub.repos.messages.add(Message(chat_id="c1", sender=SenderRole.USER, text="hi", file_comment="see pic"))

    wire = hub.broadcaster.build_snapshot().to_wire()
    chat = wire["chats"][0]

    assert set(chat) >= {"_id", "chatId", "customNote", "currentStep", "lastUpdate", "messages"}
    message = chat["messages"][0]
    assert message["fileComment"] == "see pic"
    assert message["kind"] == "text"
    assert wire["settings"]["allScriptsEnabled"] is True


def test_broadcast_failure_is_logged_and_skipped(hub, monkeypatch, caplog):
    ws = FakeWebSocket()
    hub.connect(ws)

    def broken():
        raise RuntimeError("store offline")

    monkeypatch.setattr(hub.broadcaster, "build_snapshot", broken)

    with caplog.at_level(logging.ERROR):
        assert run(hub.broadcaster.broadcast()) is False

    assert ws.sent == []
    assert "broadcast skipped" in caplog.text
