"""Display formatting for stored messages."""

from typing import List, Optional, Sequence, Tuple

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


def split_think_block(content: str) -> Optional[Tuple[str, str, str]]:
    """Split a reply into (before, thinking, after) around the first <think> pair.

    Returns None when the content has no complete, well-ordered pair.
    """
    start = content.find(THINK_OPEN)
    end = content.find(THINK_CLOSE)
    if start == -1 or end == -1 or end < start:
        return None
    before = content[:start]
    thinking = content[start + len(THINK_OPEN):end].strip()
    after = content[end + len(THINK_CLOSE):]
    return before, thinking, after


def render_message(content: str) -> str:
    """Render reasoning as a collapsible block for the markdown transcript."""
    parts = split_think_block(content)
    if parts is None:
        return content
    before, thinking, after = parts
    rendered = []
    if before.strip():
        rendered.append(before.strip())
    rendered.append(f"<details><summary>Thinking</summary>\n\n{thinking}\n\n</details>")
    if after.strip():
        rendered.append(after.strip())
    return "\n\n".join(rendered)


def format_history(messages: Sequence[Tuple[str, str]]) -> List[dict]:
    """Convert (role, content) pairs to Gradio Chatbot messages format."""
    return [
        {"role": role, "content": render_message(content) if role == "assistant" else content}
        for role, content in messages
        if role in ("user", "assistant")
    ]
