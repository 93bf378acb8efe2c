"""Generative AI providers."""

from .provider import (
    AIProvider,
    AnthropicProvider,
    NullProvider,
    UNIDENTIFIED_CATEGORY,
    create_provider,
    normalize_category,
    parse_json_response,
)

__all__ = [
    "AIProvider",
    "AnthropicProvider",
    "NullProvider",
    "UNIDENTIFIED_CATEGORY",
    "create_provider",
    "normalize_category",
    "parse_json_response",
]
