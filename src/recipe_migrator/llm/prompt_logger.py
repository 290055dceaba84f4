"""
Recipe Migrator - Prompt Logger.

Logs extraction prompts and responses to files for debugging.
Enabled via MIGRATOR_LOG_PROMPTS=1 (settings) or the --log-prompts CLI flag.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from recipe_migrator.config import settings

LOG_DIR = Path("prompt_logs")

# Inline attachments are summarised, not written out
MAX_INLINE_CHARS = 200

# Set by enable_prompt_logging(); None follows settings.migrator_log_prompts
_override: bool | None = None

# Session tracking
_session_id: str | None = None
_call_counter: int = 0


def enable_prompt_logging(enabled: bool | None = True) -> None:
    """Enable or disable prompt logging. None goes back to the configured setting."""
    global _override
    _override = enabled
    if is_enabled():
        _ensure_log_dir()


def is_enabled() -> bool:
    if _override is not None:
        return _override
    return settings.migrator_log_prompts


def _ensure_log_dir() -> None:
    LOG_DIR.mkdir(exist_ok=True)


def _get_session_id() -> str:
    """Get or create a session ID for this run."""
    global _session_id
    if _session_id is None:
        _session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    return _session_id


def _get_session_dir() -> Path:
    session_dir = LOG_DIR / _get_session_id()
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir


def format_messages(messages: list[dict[str, Any]]) -> str:
    """Render chat messages as text, shortening inline base64 attachments."""
    blocks = []
    for message in messages:
        content = message.get("content")
        if isinstance(content, str):
            parts = [content]
        else:
            parts = [_format_part(part) for part in content or []]
        blocks.append(f"[{message.get('role', '?')}]\n" + "\n".join(parts))
    return "\n\n".join(blocks)


def _format_part(part: dict[str, Any]) -> str:
    kind = part.get("type")
    if kind == "text":
        return part.get("text", "")
    if kind == "image_url":
        url = part.get("image_url", {}).get("url", "")
        return f"<image {len(url)} chars: {url[:40]}...>"
    if kind == "file":
        file_part = part.get("file", {})
        data = file_part.get("file_data", "")
        return f"<file {file_part.get('filename', '?')} {len(data)} chars>"
    text = json.dumps(part, default=str)
    return text if len(text) <= MAX_INLINE_CHARS else text[:MAX_INLINE_CHARS] + "..."


def log_prompt(
    *,
    node: str,
    model: str,
    messages: list[dict[str, Any]],
    response_model: str,
    response: Any = None,
    error: str | None = None,
) -> Path | None:
    """
    Log a prompt and response to a markdown file.

    Returns:
        Path to the log file, or None if logging is disabled
    """
    if not is_enabled():
        return None

    global _call_counter
    _call_counter += 1

    _ensure_log_dir()
    filepath = _get_session_dir() / f"{_call_counter:02d}_{node}.md"

    content = f"""# LLM Call: {node}

**Time:** {datetime.now().isoformat()}
**Model:** {model}
**Response Model:** {response_model}

---

## Messages

```
{format_messages(messages)}
```

---

## Response

"""

    if error:
        content += f"**ERROR:** {error}\n"
    elif response is not None:
        try:
            if hasattr(response, "model_dump"):
                response_dict = response.model_dump()
            else:
                response_dict = response
            content += f"```json\n{json.dumps(response_dict, indent=2, default=str)}\n```\n"
        except (TypeError, ValueError) as e:
            content += f"```\n{response}\n```\n\n(Serialization error: {e})\n"
    else:
        content += "(No response)\n"

    filepath.write_text(content, encoding="utf-8")

    return filepath


def get_session_log_dir() -> Path | None:
    """Get the current session's log directory, if logging is enabled."""
    if not is_enabled():
        return None
    return _get_session_dir()


def reset_session() -> None:
    """Reset the session (for testing or a new batch)."""
    global _session_id, _call_counter
    _session_id = None
    _call_counter = 0
