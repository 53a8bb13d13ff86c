"""
Local Chat Assistant - Gradio interface over persisted chats and a local Ollama server.
"""

import logging
from typing import List, Optional, Tuple

import gradio as gr

from config.settings import (
    DEFAULT_CHAT_TITLE,
    LOG_LEVEL,
    MAX_TITLE_LEN,
    MAX_ZOOM,
    MIN_ZOOM,
    OLLAMA_BASE_URL,
    ZOOM_STEP,
)
from core.llm_client import OllamaClient
from core.session_controller import ChatSessionController
from core.settings_manager import SettingsManager
from models.schemas import Settings
from storage.chat_store import ChatStore
from utils.formatting import format_history

logger = logging.getLogger(__name__)

THINKING_PLACEHOLDER = "Thinking..."
REFRESH_SECONDS = 1.0

# Services shared by every browser session
_store: Optional[ChatStore] = None
_client: Optional[OllamaClient] = None
_controller: Optional[ChatSessionController] = None
_settings_mgr: Optional[SettingsManager] = None


def _ensure_services() -> ChatSessionController:
    """Ensure store, client, controller and settings manager exist."""
    global _store, _client, _controller, _settings_mgr
    if _store is None:
        _store = ChatStore()
    if _client is None:
        _client = OllamaClient()
    if _controller is None:
        _controller = ChatSessionController(_store, _client)
    if _settings_mgr is None:
        _settings_mgr = SettingsManager(_store)
    return _controller


def _chat_choices() -> List[Tuple[str, str]]:
    return [(chat.title, chat.id) for chat in _ensure_services().list_chats()]


def _header(chat_id: Optional[str]) -> str:
    if chat_id is None:
        return "## No Chat Selected"
    titles = {cid: title for title, cid in _chat_choices()}
    return f"## {titles.get(chat_id, chat_id)}"


def _model_line() -> str:
    model = _settings_mgr.load().model
    return f"Model: {model}" if model else "Model: no model selected"


def _view(chat_id: Optional[str]) -> Tuple[list, str, bool, tuple]:
    """History, status text, busy flag and a change signature for a chat."""
    controller = _ensure_services()
    if chat_id is None:
        return [], _model_line(), False, (None,)
    messages = controller.messages(chat_id)
    busy = controller.is_busy(chat_id)
    history = format_history(messages)
    if busy:
        history.append({"role": "assistant", "content": THINKING_PLACEHOLDER})
    status = f"{_model_line()} | Messages: {len(messages)}"
    if busy:
        status += " | Status: generating"
    signature = (chat_id, len(messages), messages[-1] if messages else None, busy)
    return history, status, busy, signature


def _render(chat_id: Optional[str]):
    history, status, busy, signature = _view(chat_id)
    return (
        history,
        status,
        gr.update(interactive=chat_id is not None and not busy),
        gr.update(visible=busy),
        signature,
    )


# Handlers touching the controller must be coroutines: it belongs to the event loop.

async def refresh_view(chat_id: Optional[str], last_signature):
    """Timer tick: re-render only when the selected chat changed."""
    history, status, busy, signature = _view(chat_id)
    if signature == last_signature:
        return gr.update(), gr.update(), gr.update(), gr.update(), last_signature
    return _render(chat_id)


def _select(chat_id: Optional[str]):
    return (chat_id, _header(chat_id)) + _render(chat_id)


async def select_chat(chat_id: Optional[str]):
    return _select(chat_id)


async def new_chat():
    chat = _ensure_services().create_chat(DEFAULT_CHAT_TITLE)
    return (gr.update(choices=_chat_choices(), value=chat.id),) + _select(chat.id)


async def rename_chat(chat_id: Optional[str], title: str):
    if chat_id is not None and title.strip():
        _ensure_services().rename_chat(chat_id, title[:MAX_TITLE_LEN])
    return gr.update(choices=_chat_choices(), value=chat_id), _header(chat_id), ""


async def delete_chat(chat_id: Optional[str]):
    if chat_id is not None:
        _ensure_services().delete_chat(chat_id)
    return (gr.update(choices=_chat_choices(), value=None),) + _select(None)


async def send_message(text: str, chat_id: Optional[str]):
    """Persist the user turn and start generation in the background."""
    if chat_id is None or not text.strip():
        return (text,) + _render(chat_id)
    controller = _ensure_services()
    controller.send(chat_id, text, _settings_mgr.load())
    return ("",) + _render(chat_id)


async def interrupt(chat_id: Optional[str]):
    if chat_id is not None:
        _ensure_services().cancel(chat_id)
    return _render(chat_id)


async def refresh_models(current_model: str):
    _ensure_services()
    models = await _client.list_models()
    if current_model and current_model not in models:
        models.insert(0, current_model)
    return gr.update(choices=[("- Select a model -", "")] + [(m, m) for m in models], value=current_model)


async def apply_settings(model, system_prompt, temperature, top_p, max_tokens, zoom):
    _ensure_services()
    current = _settings_mgr.load()
    applied = _settings_mgr.apply(current.model_copy(update={
        "model": model or "",
        "system_prompt": system_prompt or "",
        "temperature": float(temperature),
        "top_p": float(top_p),
        "max_tokens": int(max_tokens),
        "zoom": int(zoom),
    }))
    return applied.model, f"Settings applied. {_model_line()}"


async def delete_all_history():
    controller = _ensure_services()
    controller.cancel_all()
    _settings_mgr.delete_all_history()
    return (gr.update(choices=[], value=None),) + _select(None)


def build_ui():
    """Build Gradio interface."""
    _ensure_services()
    settings: Settings = _settings_mgr.load()
    css = f"body {{ zoom: {settings.zoom}%; }}"

    with gr.Blocks(title="Local Chat Assistant", theme=gr.themes.Soft(), css=css) as demo:
        current_chat = gr.State(value=None)
        last_signature = gr.State(value=(None,))

        with gr.Row():
            with gr.Column(scale=1):
                gr.Markdown("# Chats")
                new_chat_btn = gr.Button("New Chat", variant="primary")
                chat_list = gr.Radio(choices=_chat_choices(), label="Conversations", value=None)
                rename_box = gr.Textbox(label="Rename selected chat", max_lines=1,
                                        placeholder=f"Up to {MAX_TITLE_LEN} characters")
                with gr.Row():
                    rename_btn = gr.Button("Rename")
                    delete_btn = gr.Button("Delete", variant="stop")

                with gr.Accordion("Settings", open=False):
                    model = gr.Dropdown(
                        choices=[("- Select a model -", "")] + ([(settings.model, settings.model)] if settings.model else []),
                        value=settings.model,
                        label="Model (choose one of the available Ollama models)",
                        allow_custom_value=True,
                    )
                    refresh_models_btn = gr.Button("Refresh models")
                    system_prompt = gr.Textbox(label="System prompt (optional)", value=settings.system_prompt, lines=3)
                    temperature = gr.Slider(0.0, 2.0, value=settings.temperature, step=0.05, label="Temperature")
                    top_p = gr.Slider(0.0, 1.0, value=settings.top_p, step=0.01, label="Top-p")
                    max_tokens = gr.Number(value=settings.max_tokens, precision=0, minimum=1, label="Max tokens")
                    zoom = gr.Slider(MIN_ZOOM, MAX_ZOOM, value=settings.zoom, step=ZOOM_STEP,
                                     label="Zoom (%) - applied on next launch")
                    apply_btn = gr.Button("Apply", variant="primary")
                    delete_all_btn = gr.Button("Delete all history", variant="stop")

            with gr.Column(scale=3):
                header = gr.Markdown("## No Chat Selected")
                chatbot = gr.Chatbot(label="Conversation", height=520, type="messages")
                msg = gr.Textbox(label="Your Message", placeholder="Send a message...", lines=2)
                with gr.Row():
                    send_btn = gr.Button("Send", variant="primary", interactive=False)
                    interrupt_btn = gr.Button("Interrupt", visible=False)
                status = gr.Textbox(label="Status", interactive=False)

        view_outputs = [chatbot, status, send_btn, interrupt_btn, last_signature]

        chat_list.change(select_chat, inputs=[chat_list], outputs=[current_chat, header] + view_outputs)
        new_chat_btn.click(new_chat, outputs=[chat_list, current_chat, header] + view_outputs)
        rename_btn.click(rename_chat, inputs=[current_chat, rename_box], outputs=[chat_list, header, rename_box])
        delete_btn.click(delete_chat, inputs=[current_chat],
                         outputs=[chat_list, current_chat, header] + view_outputs)

        send_inputs = [msg, current_chat]
        send_outputs = [msg] + view_outputs
        msg.submit(send_message, send_inputs, send_outputs, concurrency_limit=None)
        send_btn.click(send_message, send_inputs, send_outputs, concurrency_limit=None)
        interrupt_btn.click(interrupt, inputs=[current_chat], outputs=view_outputs, concurrency_limit=None)

        refresh_models_btn.click(refresh_models, inputs=[model], outputs=[model])
        apply_btn.click(apply_settings, inputs=[model, system_prompt, temperature, top_p, max_tokens, zoom],
                        outputs=[model, status])
        delete_all_btn.click(delete_all_history, outputs=[chat_list, current_chat, header] + view_outputs)

        timer = gr.Timer(REFRESH_SECONDS)
        timer.tick(refresh_view, inputs=[current_chat, last_signature], outputs=view_outputs)
        demo.load(refresh_models, inputs=[model], outputs=[model])

    return demo


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    demo = build_ui()
    logger.info("Starting Local Chat Assistant. Ensure Ollama is running at %s.", OLLAMA_BASE_URL)
    demo.launch(inbrowser=True)


if __name__ == "__main__":
    main()
