"""Reading and writing chats as JSONL files.

The first line of a chat file is a header object (chat metadata); every
following line is one message object.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .messages import Message, message_from_dict, message_to_dict

_LOG = logging.getLogger(__name__)


def read_chat_file(path: str | Path) -> tuple[dict[str, Any], list[Message]]:
    """Return ``(header, messages)`` from a JSONL chat file.

    A first line that has no ``mes`` key is the header; files without one
    get an empty header.
    """
    header: dict[str, Any] = {}
    messages: list[Message] = []
    with open(path, encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_no}: invalid JSON ({exc.msg})") from exc
            if not isinstance(data, dict):
                raise ValueError(f"{path}:{line_no}: expected a JSON object")
            if line_no == 1 and "mes" not in data:
                header = data
                continue
            messages.append(message_from_dict(data))
    _LOG.info("Read %d messages from %s", len(messages), path)
    return header, messages


def write_chat_file(path: str | Path, header: dict[str, Any], messages: Sequence[Message]) -> None:
    """Write *header* and *messages* as a JSONL chat file."""
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(json.dumps(header, ensure_ascii=False) + "\n")
        for message in messages:
            fh.write(json.dumps(message_to_dict(message), ensure_ascii=False) + "\n")
    _LOG.info("Wrote %d messages to %s", len(messages), path)
