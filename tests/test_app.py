"""Tests for the Gradio handlers in app.py."""

import inspect

import pytest

import app
from core.session_controller import ChatSessionController
from core.settings_manager import SettingsManager
from models.schemas import Settings

CONTROLLER_HANDLERS = [
    "refresh_view",
    "select_chat",
    "new_chat",
    "rename_chat",
    "delete_chat",
    "send_message",
    "interrupt",
    "apply_settings",
    "delete_all_history",
]


@pytest.fixture
def services(monkeypatch, store, fake_client):
    controller = ChatSessionController(store, fake_client)
    monkeypatch.setattr(app, "_store", store)
    monkeypatch.setattr(app, "_client", fake_client)
    monkeypatch.setattr(app, "_controller", controller)
    monkeypatch.setattr(app, "_settings_mgr", SettingsManager(store))
    return controller


@pytest.mark.parametrize("name", CONTROLLER_HANDLERS)
def test_controller_handlers_are_coroutines(name):
    assert inspect.iscoroutinefunction(getattr(app, name))


async def test_delete_chat_while_generating(services, store, fake_client):
    app._settings_mgr.apply(Settings(model="llama3"))
    chat = services.create_chat()
    fake_client.hold()

    await app.send_message("hi", chat.id)
    assert services.is_busy(chat.id)

    outputs = await app.delete_chat(chat.id)

    assert outputs[1] is None
    assert store.get_chat(chat.id) is None
    assert not services.is_busy(chat.id)
    fake_client.release()
    await services.aclose()


async def test_delete_all_history_cancels_and_wipes(services, store, fake_client):
    app._settings_mgr.apply(Settings(model="llama3", temperature=0.4))
    chats = [services.create_chat(f"c{i}") for i in range(2)]
    fake_client.hold()
    for chat in chats:
        await app.send_message("hi", chat.id)

    await app.delete_all_history()

    assert services.busy_chats() == []
    assert store.list_chats() == []
    assert app._settings_mgr.load().temperature == 0.4
    fake_client.release()
    await services.aclose()
