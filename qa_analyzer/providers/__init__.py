"""
Provider adapters for the QA Impact Analyzer.

Fixed fallback priority:
1. LocalAdapter - Ollama-compatible model server (``local``)
2. RegionalAdapter - YandexGPT Foundation Models API (``regional``)
3. FrontierAdapter - OpenAI-compatible chat completions (``frontier``)
"""

from typing import List, Optional

from ..normalizer import ResponseNormalizer
from .base import PreparedRequest, ProviderAdapter
from .local import LocalAdapter
from .regional import RegionalAdapter
from .frontier import FrontierAdapter


def default_adapters(normalizer: Optional[ResponseNormalizer] = None) -> List[ProviderAdapter]:
    """One adapter per built-in provider, in fallback priority order."""
    return [
        LocalAdapter(normalizer),
        RegionalAdapter(normalizer),
        FrontierAdapter(normalizer),
    ]


__all__ = [
    "PreparedRequest",
    "ProviderAdapter",
    "LocalAdapter",
    "RegionalAdapter",
    "FrontierAdapter",
    "default_adapters",
]
