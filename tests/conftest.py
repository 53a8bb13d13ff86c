import asyncio

import pytest

from core.session_controller import ChatSessionController
from storage.chat_store import ChatStore


class FakeClient:
    """Inference client stand-in whose replies are released on demand."""

    def __init__(self, reply="hello", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.gate = asyncio.Event()
        self.gate.set()

    def hold(self):
        self.gate.clear()

    def release(self):
        self.gate.set()

    async def generate(self, conversation, model, params):
        self.calls.append((list(conversation), model, params))
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply

    async def list_models(self):
        return []


@pytest.fixture
def store(tmp_path):
    store = ChatStore(f"sqlite:///{tmp_path / 'chat.db'}")
    yield store
    store.close()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def controller(store, fake_client):
    return ChatSessionController(store, fake_client)
