"""Client configuration loading and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path

import keyring

from storepipe.exceptions import MissingCredentialError

SERVICE_NAME = "storepipe-gemini"
KEY_NAME = "api_key"

DEFAULT_TIMEOUT_MS = 90_000
DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass(frozen=True)
class ClientConfig:
    """Settings for the Gemini API client.

    Built once at startup and passed explicitly; never mutated.
    """

    api_key: str
    organization: str | None = None
    project: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    model: str = DEFAULT_MODEL

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise MissingCredentialError("Missing Gemini API key in config")


def get_api_key() -> str:
    """Get Gemini API key: system keyring first, then GEMINI_API_KEY env var fallback.

    Returns:
        API key string.

    Raises:
        MissingCredentialError: If no key found anywhere, with actionable instructions.
    """
    api_key = keyring.get_password(SERVICE_NAME, KEY_NAME)
    if api_key:
        return api_key

    api_key = os.environ.get("GEMINI_API_KEY")
    if api_key:
        return api_key

    raise MissingCredentialError(
        "Gemini API key not found.\n"
        "Set it with: storepipe config set-api-key YOUR_KEY\n"
        "Or: export GEMINI_API_KEY=your-key"
    )


def load_client_config(
    config_path: Path | None = None, **overrides: object
) -> ClientConfig:
    """Load client configuration from JSON, falling back to defaults.

    Reads ``config/storepipe.json`` when *config_path* is ``None``; a missing
    file just means defaults. Keyword *overrides* (``None`` values ignored)
    win over the file. The API key comes from the file, then
    :func:`get_api_key`.

    Raises:
        MissingCredentialError: If no API key can be resolved.
    """
    if config_path is None:
        config_path = Path("config/storepipe.json")

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)

    field_names = {f.name for f in fields(ClientConfig)}
    kwargs = {k: v for k, v in data.items() if k in field_names}
    kwargs.update({k: v for k, v in overrides.items() if v is not None and k in field_names})

    if not kwargs.get("api_key"):
        kwargs["api_key"] = get_api_key()

    return ClientConfig(**kwargs)

