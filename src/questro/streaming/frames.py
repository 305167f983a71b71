"""Event-stream frame classification and payload decoding.

A frame is one line of the response body with its terminator removed.
Only ``data:`` frames carry events; comments and blank lines keep the
connection alive and are ignored.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from ..config import COMMENT_PREFIX, DATA_PREFIX, DONE_SENTINEL
from .models import CompletionChunk

logger = logging.getLogger(__name__)


class FrameKind(str, Enum):
    """Classification of a single frame."""

    IGNORED = "ignored"      # Blank, comment or non-data line
    DONE = "done"            # Termination sentinel
    DELTA = "delta"          # Valid event, possibly without text
    MALFORMED = "malformed"  # Unparseable JSON or unexpected shape


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    text: str | None = None


_IGNORED = Frame(FrameKind.IGNORED)
_DONE = Frame(FrameKind.DONE)
_MALFORMED = Frame(FrameKind.MALFORMED)


def parse_frame(line: str) -> Frame:
    """Classify a line and extract its text delta.

    Args:
        line: One line of the event stream without its ``\\n``

    Returns:
        Frame describing what the line carries. Shape mismatches fail
        closed as ``MALFORMED`` instead of raising.
    """
    if line.endswith("\r"):
        line = line[:-1]

    if not line or line.startswith(COMMENT_PREFIX):
        return _IGNORED

    if not line.startswith(DATA_PREFIX):
        return _IGNORED

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return _DONE

    try:
        chunk = CompletionChunk.model_validate_json(payload)
    except ValidationError:
        logger.debug("Dropping malformed frame: %.120s", payload)
        return _MALFORMED

    return Frame(FrameKind.DELTA, chunk.text)
