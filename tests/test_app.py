from collections import Counter

import pytest
from fastapi.testclient import TestClient

from chatdesk.main import create_app
from chatdesk.storage import RecordStore


@pytest.fixture
def client(config):
    app = create_app(config=config, store=RecordStore())
    with TestClient(app) as test_client:
        yield test_client


def receive(ws, count):
    return [ws.receive_json() for _ in range(count)]


def test_health_reports_store_and_connections(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "environment": "test",
        "store_available": True,
        "connections": 0,
    }


def test_websocket_scripted_conversation_end_to_end(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "save_step", "data": {"key": "start", "question": "Hi! How can we help?"}})
        ws.send_json(
            {
                "event": "save_step",
                "data": {
                    "key": "delivery",
                    "question": "Where should we deliver?",
                    "options": [{"text": "Home"}, {"text": "Office"}],
                },
            }
        )
        receive(ws, 8)

        ws.send_json({"event": "client_init", "data": "c1"})
        init_frames = receive(ws, 7)
        assert [f["event"] for f in init_frames[:3]] == ["history", "gallery_data", "receive_message"]
        assert init_frames[0]["data"] == []
        assert init_frames[2]["data"]["text"] == "Hi! How can we help?"

        ws.send_json(
            {
                "event": "send_message",
                "data": {"chatId": "c1", "sender": "user", "text": "Delivery", "nextStep": "delivery"},
            }
        )
        frames = receive(ws, 10)

    counts = Counter(f["event"] for f in frames)
    assert counts["receive_message"] == 2
    assert counts["update_chat_list"] == 2
    texts = [f["data"]["text"] for f in frames if f["event"] == "receive_message"]
    assert texts == ["Delivery", "Where should we deliver?"]

    snapshot = client.get("/status/snapshot").json()
    chat = snapshot["chats"][0]
    assert chat["chatId"] == "c1"
    assert chat["currentStep"] == "delivery"
    assert [m["sender"] for m in chat["messages"]] == ["bot", "user", "bot"]
    assert [o["text"] for o in chat["messages"][-1]["options"]] == ["Home", "Office"]


def test_websocket_ignores_garbage_and_keeps_serving(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("definitely not json")
        ws.send_bytes(b"\x00\x01binary")
        ws.send_json({"event": "nope"})
        ws.send_json({"event": "manager_init"})
        frames = receive(ws, 4)

    assert [f["event"] for f in frames] == [
        "steps_list_ordered",
        "gallery_data",
        "update_chat_list",
        "global_settings",
    ]


def test_connections_view_tracks_rooms(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "client_init", "data": "room-7"})
        receive(ws, 6)
        stats = client.get("/status/connections").json()

    assert stats["connections"] == 1
    assert stats["rooms"] == {"room-7": 1}
    assert stats["pending_scripted_replies"] == 0
