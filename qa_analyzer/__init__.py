"""
QA Impact Analyzer

Turns change descriptions and PRDs into structured QA artifacts (impact
areas, test cases, edge cases, regression priority) using pluggable LLM
providers with ordered fallback and strict result normalization.
"""

__version__ = "0.1.0"
__all__ = [
    "Orchestrator",
    "CancellationToken",
    "ProviderRegistry",
    "ResponseNormalizer",
    "TaskKind",
    "TaskRequest",
    "ImpactAnalysisResult",
    "TestGenerationResult",
    "AllProvidersFailedError",
    "NoProviderConfiguredError",
]

from .models import TaskKind, TaskRequest, ImpactAnalysisResult, TestGenerationResult
from .normalizer import ResponseNormalizer
from .registry import ProviderRegistry
from .orchestrator import Orchestrator, CancellationToken
from .exceptions import AllProvidersFailedError, NoProviderConfiguredError
