"""Pytest configuration and fixtures for QA analyzer tests."""

import json

import pytest

from qa_analyzer.config import DictConfigStore
from qa_analyzer.models import TaskKind, TaskRequest
from qa_analyzer.providers.base import PreparedRequest, ProviderAdapter
from qa_analyzer.registry import ProviderRegistry


IMPACT_RESPONSE = {
    "summary": "Checkout now calls the new tax service",
    "impactAreas": [
        {
            "title": "Checkout",
            "severity": "high",
            "items": ["Tax shown on order summary", "Totals match invoice"]
        },
        {
            "title": "Invoices",
            "severity": "medium",
            "items": ["PDF invoice tax lines"]
        }
    ],
    "specificTestCases": ["Order with mixed taxable and exempt items"],
    "edgeCases": ["Tax service timeout during checkout"],
    "downstreamRisks": ["Accounting export"],
    "regressionPriority": "HIGH",
    "recommendation": "Run the full checkout regression suite"
}

TESTS_RESPONSE = {
    "testCategories": [
        {
            "category": "Functional",
            "tests": [
                {
                    "id": "TC-001",
                    "title": "Save card with valid ZIP code",
                    "steps": ["Open payment form", "Enter ZIP 12345", "Click Save"],
                    "expected": "Card is saved",
                    "priority": "high"
                }
            ]
        },
        {
            "category": "Negative",
            "tests": [
                {
                    "id": "TC-002",
                    "title": "Save card without ZIP code",
                    "steps": ["Open payment form", "Leave ZIP empty", "Click Save"],
                    "expected": "Validation error 'ZIP code is required'",
                    "priority": "medium"
                }
            ]
        }
    ],
    "edgeCases": ["ZIP+4 format"]
}


class MockAdapter(ProviderAdapter):
    """
    Adapter that replays scripted responses instead of calling a backend.

    Each scripted entry is either raw response text or a ProviderError to raise.
    """

    display_name = "Mock"

    def __init__(self, provider_id, responses=None, required_fields=("endpoint",)):
        super().__init__()
        self.provider_id = provider_id
        self.required_fields = tuple(required_fields)
        self.responses = list(responses or [])
        self.call_count = 0
        self.requests = []
        self.on_execute = None

    def build_request(self, request, prompt, config):
        return PreparedRequest(
            url=f"mock://{self.provider_id}",
            body={"system": prompt.system, "prompt": prompt.user},
            timeout=self.timeout_for(config)
        )

    def execute(self, prepared):
        self.call_count += 1
        self.requests.append(prepared)
        if self.on_execute is not None:
            self.on_execute()
        response = self.responses.pop(0) if self.responses else json.dumps(IMPACT_RESPONSE)
        if isinstance(response, Exception):
            raise response
        return response

    def parse_response(self, payload):
        return payload


@pytest.fixture
def impact_json():
    return json.dumps(IMPACT_RESPONSE)


@pytest.fixture
def tests_json():
    return json.dumps(TESTS_RESPONSE)


@pytest.fixture
def impact_request():
    return TaskRequest(
        kind=TaskKind.IMPACT_ANALYSIS,
        input_text="Checkout switches from the legacy tax table to the new tax service.",
        context=("Payments & billing", "Currency rounding and tax calculation")
    )


@pytest.fixture
def tests_request():
    return TaskRequest(
        kind=TaskKind.TEST_GENERATION,
        input_text="US ZIP code is required when saving a card.",
    )


@pytest.fixture
def settings():
    """Every mock provider usable, local primary, fallback on."""
    return DictConfigStore({
        "provider": "local",
        "fallback_enabled": True,
        "local.endpoint": "http://localhost:11434",
        "regional.endpoint": "https://regional.example",
        "frontier.endpoint": "https://frontier.example",
    })


@pytest.fixture
def mock_adapters():
    return {
        "local": MockAdapter("local"),
        "regional": MockAdapter("regional"),
        "frontier": MockAdapter("frontier"),
    }


@pytest.fixture
def mock_registry(mock_adapters):
    return ProviderRegistry(mock_adapters.values())


@pytest.fixture
def adapter_factory():
    """Build extra MockAdapters inside a test."""
    return MockAdapter
