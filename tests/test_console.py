import pytest
import requests

from chatdesk import console
from chatdesk.console import (
    ConsoleState,
    build_frame,
    describe_frame,
    http_base_from_ws,
    init_frame,
    parse_args,
    parse_line,
)


def test_parse_args_defaults():
    args = parse_args([])

    assert args.server == "ws://127.0.0.1:4000/ws"
    assert args.role == "client"
    assert args.chat_id == "dev-chat-1"
    assert args.snapshot is False


def test_init_frame_depends_on_role():
    assert init_frame(ConsoleState("client", "c9")) == {"event": "client_init", "data": "c9"}
    assert init_frame(ConsoleState("manager", "c9")) == build_frame("manager_init")


def test_step_command_attaches_next_step_once():
    state = ConsoleState("client", "c1")

    assert parse_line("/step delivery", state) is None
    first = parse_line("Deliver please", state)
    second = parse_line("thanks", state)

    assert first == {
        "event": "send_message",
        "data": {"chatId": "c1", "sender": "user", "text": "Deliver please", "nextStep": "delivery"},
    }
    assert "nextStep" not in second["data"]


def test_manager_lines_and_commands():
    state = ConsoleState("manager", "c2")

    assert parse_line("   ", state) is None
    assert parse_line("hello", state)["data"]["sender"] == "manager"
    assert parse_line("/script offer", state) == {
        "event": "send_manual_script",
        "data": {"chatId": "c2", "stepKey": "offer"},
    }
    assert parse_line("/note VIP customer", state)["data"] == {"chatId": "c2", "note": "VIP customer"}


@pytest.mark.parametrize(
    "frame, expected",
    [
        (
            {
                "event": "receive_message",
                "data": {"chatId": "c1", "sender": "bot", "text": "Pick one", "options": [{"text": "A"}, {"text": "B"}]},
            },
            "[c1] bot: Pick one  [A, B]",
        ),
        ({"event": "message_deleted", "data": "abc"}, "(message abc deleted)"),
        ({"event": "update_chat_list", "data": [{}, {}]}, "<update_chat_list: 2 item(s)>"),
        ({"event": "global_settings", "data": {"allScriptsEnabled": True}}, '<global_settings: {"allScriptsEnabled": true}>'),
    ],
)
def test_describe_frame(frame, expected):
    assert describe_frame(frame) == expected


def test_http_base_from_ws():
    assert http_base_from_ws("ws://127.0.0.1:4000/ws") == "http://127.0.0.1:4000"
    assert http_base_from_ws("wss://chat.example.com/ws") == "https://chat.example.com"


def test_fetch_snapshot_hits_status_endpoint(monkeypatch):
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"steps": [], "gallery": [], "chats": [], "settings": {}}

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse()

    monkeypatch.setattr(requests, "get", fake_get)

    assert console.fetch_snapshot("ws://localhost:4000/ws")["chats"] == []
    assert calls == [("http://localhost:4000/status/snapshot", 10.0)]


def test_main_snapshot_failure_exits_nonzero(monkeypatch, capsys):
    def fake_get(url, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", fake_get)

    with pytest.raises(SystemExit) as exc:
        console.main(["--snapshot"])

    assert exc.value.code == 1
    assert "Snapshot request failed" in capsys.readouterr().err
