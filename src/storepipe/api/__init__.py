"""API collaborator contract and its Gemini File Search implementation."""

from storepipe.api.client import GeminiFileSearchClient, cache_buster, operation_status
from storepipe.api.options import normalize_generation_options
from storepipe.api.protocol import ApiClient

__all__ = [
    "ApiClient",
    "GeminiFileSearchClient",
    "cache_buster",
    "normalize_generation_options",
    "operation_status",
]
