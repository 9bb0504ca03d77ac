import asyncio
from typing import Any, Dict, List

import pytest

from chatdesk.core.config import settings
from chatdesk.core.session_hub import build_hub
from chatdesk.models.events import StepPayload
from chatdesk.storage import RecordStore


class FakeWebSocket:
    """Records every frame the server sends; can be told to fail."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.fail = False

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self) -> List[str]:
        return [frame["event"] for frame in self.sent]

    def data_for(self, event: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == event]

    def clear(self) -> None:
        self.sent.clear()


def run(coro):
    return asyncio.run(coro)


def frame(event: str, data: Any = None) -> Dict[str, Any]:
    return {"event": event, "data": data}


@pytest.fixture
def config():
    return settings.model_copy(
        update={
            "environment": "test",
            "script_reply_delay_s": 0.0,
            "supersede_pending_scripts": False,
            "store_auto_persist": False,
        }
    )


@pytest.fixture
def store():
    return RecordStore().open()


@pytest.fixture
def hub(store, config):
    return build_hub(store, config)


@pytest.fixture
def add_step(hub):
    def _add(key: str, question: str = "", active: bool = True, **extra):
        return hub.registry.upsert_step(
            StepPayload(key=key, question=question, scripts_active=active, **extra)
        )

    return _add
