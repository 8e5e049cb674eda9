"""Normalisation of generation options before they reach ``generate_content``.

Callers often carry option names from other chat APIs. This maps them onto
the ``GenerateContentConfig`` vocabulary:

* ``max_completion_tokens`` / ``max_tokens`` -> ``max_output_tokens``
  (an explicit ``max_output_tokens`` wins)
* ``stop`` -> ``stop_sequences`` (a bare string becomes a one-item list)
* ``max_input_tokens`` is dropped; the API has no such setting
* ``model`` is dropped; it is passed to ``generate_content`` separately
"""

from __future__ import annotations

from typing import Any

_TOKEN_ALIASES = ("max_completion_tokens", "max_tokens")
_DROPPED = ("max_input_tokens", "model")


def normalize_generation_options(options: dict[str, Any]) -> dict[str, Any]:
    """Return a new options dict in ``GenerateContentConfig`` vocabulary.

    Does not mutate *options*.
    """
    normalized = dict(options)

    for alias in _TOKEN_ALIASES:
        if alias in normalized:
            value = normalized.pop(alias)
            normalized.setdefault("max_output_tokens", value)

    if "stop" in normalized:
        stop = normalized.pop("stop")
        if isinstance(stop, str):
            stop = [stop]
        normalized.setdefault("stop_sequences", stop)

    for key in _DROPPED:
        normalized.pop(key, None)

    return normalized
