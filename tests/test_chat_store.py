"""Tests for storage.chat_store.ChatStore."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import ChatNotFound, StorageError
from models.schemas import Settings
from storage.chat_store import ChatStore


def _contents(messages):
    return [m.content for m in messages]


class TestChats:
    def test_list_chats_keeps_insertion_order(self, store):
        store.create_chat("b", "Second letter")
        store.create_chat("a", "First letter")
        store.create_chat("c", "Third letter")

        assert [(c.id, c.title) for c in store.list_chats()] == [
            ("b", "Second letter"),
            ("a", "First letter"),
            ("c", "Third letter"),
        ]

    def test_rename_chat(self, store):
        store.create_chat("c1", "New Chat")
        assert store.rename_chat("c1", "Groceries") is True
        assert store.get_chat("c1").title == "Groceries"

    def test_rename_missing_chat_is_noop(self, store):
        store.create_chat("c1", "New Chat")
        assert store.rename_chat("missing", "x") is False
        assert [c.title for c in store.list_chats()] == ["New Chat"]

    def test_delete_chat_removes_messages(self, store):
        store.create_chat("c1", "One")
        store.create_chat("c2", "Two")
        store.append_message("c1", "user", "hi")
        store.append_message("c2", "user", "other")

        assert store.delete_chat("c1") is True
        assert store.get_chat("c1") is None
        assert store.count_messages("c1") == 0
        assert _contents(store.load_messages("c2")) == ["other"]

    def test_duplicate_chat_id_raises_storage_error(self, store):
        store.create_chat("c1", "One")
        with pytest.raises(StorageError):
            store.create_chat("c1", "Again")


class TestMessages:
    def test_append_to_missing_chat_fails(self, store):
        with pytest.raises(ChatNotFound):
            store.append_message("nope", "user", "hi")

    def test_append_rejects_unknown_role(self, store):
        store.create_chat("c1", "One")
        with pytest.raises(ValueError):
            store.append_message("c1", "tool", "x")

    def test_ids_increase_and_timestamp_is_set(self, store):
        store.create_chat("c1", "One")
        first = store.append_message("c1", "user", "a")
        second = store.append_message("c1", "assistant", "b")

        assert second.id > first.id
        assert first.timestamp is not None
        assert first.chat_id == "c1"

    def test_ids_not_reused_after_wipe(self, store):
        store.create_chat("c1", "One")
        last = store.append_message("c1", "user", "a")
        store.delete_all()
        store.create_chat("c1", "One")

        assert store.append_message("c1", "user", "b").id > last.id

    def test_load_messages_returns_newest_in_chronological_order(self, store):
        store.create_chat("c1", "One")
        for i in range(5):
            store.append_message("c1", "user", f"m{i}")

        assert _contents(store.load_messages("c1")) == ["m0", "m1", "m2", "m3", "m4"]
        assert _contents(store.load_messages("c1", limit=2)) == ["m3", "m4"]
        assert store.load_messages("c1", limit=0) == []


class TestEnforceCap:
    def test_keeps_exactly_cap_newest(self, store):
        store.create_chat("c1", "One")
        ids = [store.append_message("c1", "user", f"m{i}").id for i in range(10)]

        deleted = store.enforce_cap("c1", 4)

        remaining = store.load_messages("c1")
        assert deleted == 6
        assert [m.id for m in remaining] == ids[-4:]
        assert _contents(remaining) == ["m6", "m7", "m8", "m9"]

    def test_under_cap_is_untouched(self, store):
        store.create_chat("c1", "One")
        for i in range(3):
            store.append_message("c1", "user", f"m{i}")

        assert store.enforce_cap("c1", 3) == 0
        assert store.count_messages("c1") == 3

    def test_only_affects_given_chat(self, store):
        store.create_chat("c1", "One")
        store.create_chat("c2", "Two")
        for i in range(4):
            store.append_message("c1", "user", f"a{i}")
            store.append_message("c2", "user", f"b{i}")

        store.enforce_cap("c1", 1)

        assert _contents(store.load_messages("c1")) == ["a3"]
        assert store.count_messages("c2") == 4

    def test_zero_cap_empties_chat(self, store):
        store.create_chat("c1", "One")
        store.append_message("c1", "user", "a")
        store.enforce_cap("c1", 0)
        assert store.count_messages("c1") == 0

    def test_negative_cap_rejected(self, store):
        with pytest.raises(ValueError):
            store.enforce_cap("c1", -1)


class TestSettingsRow:
    def test_seeded_with_defaults(self, store):
        stored = store.get_settings()
        assert stored["model"] == ""
        assert stored["temperature"] == 0.7
        assert stored["max_tokens"] == 512
        assert stored["maximized"] == 1

    def test_get_settings_returns_raw_columns(self, store):
        assert set(store.get_settings()) == {
            "model", "system_prompt", "temperature", "top_p", "max_tokens",
            "zoom", "maximized", "window_width", "window_height",
        }

    def test_get_settings_missing_row(self, store):
        with store.engine.begin() as conn:
            conn.exec_driver_sql("DELETE FROM settings")

        assert store.get_settings() is None

    def test_set_settings_overwrites_singleton(self, store):
        store.set_settings(Settings(model="llama3", temperature=0.2))
        store.set_settings(Settings(model="qwen2.5", temperature=0.3))

        stored = store.get_settings()
        assert stored["model"] == "qwen2.5"
        assert stored["temperature"] == 0.3

    def test_delete_all_keeps_settings(self, store):
        store.set_settings(Settings(model="llama3", temperature=1.3))
        store.create_chat("c1", "One")
        store.append_message("c1", "user", "hi")

        store.delete_all()

        assert store.list_chats() == []
        assert store.count_messages("c1") == 0
        assert store.get_settings()["temperature"] == 1.3

    def test_reopen_does_not_reseed(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'chat.db'}"
        first = ChatStore(url)
        first.set_settings(Settings(model="llama3"))
        first.close()

        second = ChatStore(url)
        assert second.get_settings()["model"] == "llama3"
        second.close()


def test_concurrent_appends_from_many_chats(store):
    chat_ids = [f"c{i}" for i in range(4)]
    for chat_id in chat_ids:
        store.create_chat(chat_id, chat_id)

    def write(chat_id):
        for i in range(25):
            store.append_message(chat_id, "user", f"{chat_id}-{i}")
            store.enforce_cap(chat_id, 20)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(write, chat_ids))

    for chat_id in chat_ids:
        messages = store.load_messages(chat_id)
        assert len(messages) == 20
        assert _contents(messages) == [f"{chat_id}-{i}" for i in range(5, 25)]
