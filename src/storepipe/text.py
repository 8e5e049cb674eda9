"""Small text helpers shared by the pipeline and the CLI."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from storepipe.models import Message

logger = logging.getLogger(__name__)

_CITATION_RE = re.compile(r"【.*?】")
_WRAP_WIDTH = 80


def is_blank(value: str | None) -> bool:
    """True for ``None`` or a string that is empty after stripping."""
    return value is None or value.strip() == ""


def filter_citations(content: str) -> str:
    """Remove inline ``【...】`` citation markers from model output."""
    return _CITATION_RE.sub("", content)


def oxford_join(names: Iterable[str | None]) -> str:
    """Join names in Oxford-comma style, skipping ``None`` and empty entries.

    >>> oxford_join(["a", "b", "c"])
    'a, b, and c'
    """
    kept = [name for name in names if name not in (None, "")]
    if not kept:
        return ""
    if len(kept) == 1:
        return kept[0]
    if len(kept) == 2:
        return f"{kept[0]} and {kept[1]}"
    return ", ".join(kept[:-1]) + ", and " + kept[-1]


def log_messages(messages: Sequence[Message]) -> None:
    """Dump a request history at DEBUG level, wrapped at 80 columns."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for message in messages:
        logger.debug("\tRole: %s", message.role)
        logger.debug("\tContent:")
        for line in message.content.split("\n"):
            slices = [line[i : i + _WRAP_WIDTH] for i in range(0, len(line), _WRAP_WIDTH)] or [""]
            for index, piece in enumerate(slices):
                prefix = "\t" if index == 0 else "\t\t"
                logger.debug("%s%s", prefix, piece)
