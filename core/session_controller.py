"""Per-chat request lifecycle: busy/idle state, dispatch and cancellation."""

import asyncio
import functools
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from config.settings import DEFAULT_CHAT_TITLE, MAX_HISTORY_MESSAGES
from core.errors import BadStatus, ConnectionFailed, InferenceError, ParseFailed, RequestTimedOut
from core.llm_client import OllamaClient, build_conversation
from models.schemas import Chat, Settings
from storage.chat_store import ChatStore
from utils import message_templates
from utils.limits import truncate_message, truncate_title

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Marker deciding whether a finished request may still be recorded.

    Cancelling and recording are mutually exclusive: whichever happens first
    settles the token and the other becomes a no-op.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._settled = False

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> bool:
        """Returns False if the result was already recorded."""
        with self._lock:
            if self._settled:
                return False
            self._cancelled = True
            self._settled = True
            return True

    def run_unless_cancelled(self, action: Callable[[], T]) -> Tuple[bool, Optional[T]]:
        """Run `action` only if not cancelled, atomically with respect to cancel()."""
        with self._lock:
            if self._cancelled:
                return False, None
            self._settled = True
            return True, action()


@dataclass
class PendingRequest:
    token: CancelToken
    idle: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None


def error_reply(error: InferenceError) -> str:
    """Human-readable assistant text for a failed exchange."""
    if isinstance(error, RequestTimedOut):
        return message_templates.REQUEST_TIMED_OUT
    if isinstance(error, ConnectionFailed):
        return message_templates.CONNECTION_FAILED
    if isinstance(error, BadStatus):
        return message_templates.BAD_STATUS.format(status=error.status_line)
    if isinstance(error, ParseFailed):
        return message_templates.PARSE_FAILED
    return f"Error: {error}"


class ChatSessionController:
    """Owns per-chat Idle/Pending state and the fate of every response.

    Must be driven from a single event loop. Each request runs as a background
    task; the only thing it shares with the controller is its cancel token.
    """

    def __init__(self, store: ChatStore, client: OllamaClient, cap: int = MAX_HISTORY_MESSAGES):
        self.store = store
        self.client = client
        self.cap = cap
        self._pending: Dict[str, PendingRequest] = {}
        self._tasks: set = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _owning_loop(self) -> asyncio.AbstractEventLoop:
        """The running loop; the first one seen becomes the only one allowed."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("ChatSessionController must be called from its event loop") from None
        if self._loop is None:
            self._loop = loop
        elif loop is not self._loop:
            raise RuntimeError("ChatSessionController is bound to another event loop")
        return loop

    # --- Chats

    def create_chat(self, title: str = DEFAULT_CHAT_TITLE) -> Chat:
        chat = self.store.create_chat(str(uuid.uuid4()), truncate_title(title))
        logger.info("Created chat %s", chat.id)
        return chat

    def rename_chat(self, chat_id: str, title: str) -> bool:
        return self.store.rename_chat(chat_id, truncate_title(title))

    def delete_chat(self, chat_id: str) -> bool:
        self.cancel(chat_id)
        deleted = self.store.delete_chat(chat_id)
        if deleted:
            logger.info("Deleted chat %s", chat_id)
        return deleted

    def list_chats(self) -> List[Chat]:
        return self.store.list_chats()

    def messages(self, chat_id: str) -> List[Tuple[str, str]]:
        """Read-only (role, content) view of a chat, oldest first."""
        return [(m.role, m.content) for m in self.store.load_messages(chat_id, self.cap)]

    # --- State

    def is_busy(self, chat_id: str) -> bool:
        return chat_id in self._pending

    def busy_chats(self) -> List[str]:
        return list(self._pending)

    async def wait_idle(self, chat_id: str) -> None:
        """Wait until the chat's current request completes or is cancelled."""
        entry = self._pending.get(chat_id)
        if entry is not None:
            await entry.idle.wait()

    def _record(self, chat_id: str, role: str, content: str) -> None:
        self.store.append_message(chat_id, role, content)
        self.store.enforce_cap(chat_id, self.cap)

    # --- Requests

    def send(self, chat_id: str, user_text: str, settings: Settings) -> Optional[asyncio.Task]:
        """Persist the user turn and dispatch a request in the background.

        Returns the background task, or None when nothing was dispatched
        (blank input, chat already busy, or no model selected).
        Raises RuntimeError, before writing anything, off the owning loop.
        """
        loop = self._owning_loop()
        if not user_text.strip():
            return None
        if self.is_busy(chat_id):
            logger.warning("Chat %s already has a request in flight, ignoring send", chat_id)
            return None

        if not settings.model.strip():
            self._record(chat_id, "assistant", message_templates.NO_MODEL_SELECTED)
            logger.warning("Send to chat %s without a model selected", chat_id)
            return None

        user_text = truncate_message(user_text)
        user_message = self.store.append_message(chat_id, "user", user_text)
        self.store.enforce_cap(chat_id, self.cap)

        history = [
            m for m in self.store.load_messages(chat_id, self.cap)
            if m.id != user_message.id
        ]
        conversation = build_conversation(settings.system_prompt, history, user_text)

        entry = PendingRequest(token=CancelToken())
        self._pending[chat_id] = entry
        task = loop.create_task(
            self._run(chat_id, entry, conversation, settings.model, settings.sampling_params())
        )
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._task_done, chat_id))
        logger.info("Dispatched request for chat %s (model=%s, turns=%d)",
                    chat_id, settings.model, len(conversation))
        return task

    async def _run(self, chat_id, entry: PendingRequest, conversation, model, params) -> None:
        try:
            try:
                reply = await self.client.generate(conversation, model, params)
            except InferenceError as e:
                logger.warning("Request for chat %s failed: %s", chat_id, e)
                reply = error_reply(e)

            recorded, _ = entry.token.run_unless_cancelled(
                lambda: self._record(chat_id, "assistant", reply)
            )
            if recorded:
                logger.info("Stored reply for chat %s", chat_id)
            else:
                logger.info("Discarded reply for cancelled request in chat %s", chat_id)
        finally:
            self._finish(chat_id, entry)

    def _task_done(self, chat_id: str, task: asyncio.Task) -> None:
        # Retrieving the exception here keeps unawaited tasks from warning again
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Failed to store reply for chat %s", chat_id, exc_info=error)

    def _finish(self, chat_id: str, entry: PendingRequest) -> None:
        # A newer request may already own this chat after a cancel
        if self._pending.get(chat_id) is entry:
            del self._pending[chat_id]
        entry.idle.set()

    def cancel(self, chat_id: str) -> bool:
        """Drop the chat's pending result and go idle. The HTTP call keeps running."""
        self._owning_loop()
        entry = self._pending.get(chat_id)
        if entry is None:
            return False
        entry.token.cancel()
        self._finish(chat_id, entry)
        logger.info("Cancelled request for chat %s", chat_id)
        return True

    def cancel_all(self) -> int:
        self._owning_loop()
        chat_ids = list(self._pending)
        for chat_id in chat_ids:
            self.cancel(chat_id)
        return len(chat_ids)

    async def aclose(self) -> None:
        """Cancel everything in flight and wait for background tasks to end."""
        self.cancel_all()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
