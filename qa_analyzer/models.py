"""
Data models and schemas for QA Impact Analyzer.

These Pydantic models define the canonical request handed to the provider
layer, the two result shapes the normalizer produces, and the per-attempt
records the orchestrator keeps. Results serialize with camelCase wire names
(impactAreas, regressionPriority, ...) and accept either naming on input.
"""

from __future__ import annotations
from typing import List, Optional, Literal, Tuple, Union
from enum import Enum
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import FailureKind


# ==================== Enumerations ====================

class TaskKind(str, Enum):
    """Which QA artifact a request asks for."""
    IMPACT_ANALYSIS = "impact_analysis"
    TEST_GENERATION = "test_generation"


Severity = Literal["low", "medium", "high", "critical"]
RegressionPriority = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
TestPriority = Literal["low", "medium", "high"]

SEVERITY_VALUES: Tuple[str, ...] = ("low", "medium", "high", "critical")
REGRESSION_PRIORITY_VALUES: Tuple[str, ...] = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
TEST_PRIORITY_VALUES: Tuple[str, ...] = ("low", "medium", "high")


# ==================== Input Models ====================

class TaskRequest(BaseModel):
    """One unit of work for the provider layer. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    kind: TaskKind = Field(..., description="Artifact to produce")
    input_text: str = Field(..., description="Change description or PRD text")
    context: Tuple[str, ...] = Field(default=(), description="Feature tag labels and checklist items")

    @field_validator('input_text')
    @classmethod
    def validate_non_empty_input(cls, v):
        if not v or not v.strip():
            raise ValueError("input_text must not be empty")
        return v

    @field_validator('context', mode='before')
    @classmethod
    def coerce_context(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,)
        return tuple(v)


# ==================== Output Models ====================

class _WireModel(BaseModel):
    """Base for result models: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=indent)


class ImpactArea(_WireModel):
    """One area of the product touched by the described change."""
    title: str = Field(..., description="Area name")
    severity: Severity = Field("low", description="How badly the area is affected")
    items: List[str] = Field(default_factory=list, description="What to check in this area")


class ImpactAnalysisResult(_WireModel):
    """Blast radius of a described change."""
    summary: str = Field(..., description="Short summary of the change and its impact")
    impact_areas: List[ImpactArea] = Field(default_factory=list)
    specific_test_cases: List[str] = Field(default_factory=list)
    edge_cases: List[str] = Field(default_factory=list)
    downstream_risks: List[str] = Field(default_factory=list)
    regression_priority: RegressionPriority = Field("LOW", description="How much regression testing is needed")
    recommendation: Optional[str] = Field(None, description="Free-form advice for the QA team")

    @property
    def kind(self) -> TaskKind:
        return TaskKind.IMPACT_ANALYSIS


class TestCase(_WireModel):
    """Concrete test case with explicit steps."""
    id: str = Field(..., description="Test case ID (TC-001, ...)")
    title: str = Field(..., description="Human-readable title")
    steps: List[str] = Field(default_factory=list, description="Ordered test steps")
    expected: str = Field("", description="Expected result")
    priority: TestPriority = Field("low", description="Execution priority")


class TestCategory(_WireModel):
    """Group of test cases sharing a category (functional, negative, ...)."""
    category: str = Field(..., description="Category name")
    tests: List[TestCase] = Field(default_factory=list)


class TestGenerationResult(_WireModel):
    """Test cases generated from a requirements document."""
    test_categories: List[TestCategory] = Field(..., min_length=1)
    edge_cases: List[str] = Field(default_factory=list)

    @property
    def kind(self) -> TaskKind:
        return TaskKind.TEST_GENERATION

    @property
    def test_count(self) -> int:
        return sum(len(category.tests) for category in self.test_categories)


TaskResult = Union[ImpactAnalysisResult, TestGenerationResult]


# ==================== Orchestration Records ====================

class FailureInfo(BaseModel):
    """Why a single provider attempt failed."""
    kind: FailureKind
    message: str
    status_code: Optional[int] = None


class AttemptOutcome(BaseModel):
    """Result of trying one provider during an orchestration."""
    provider_id: str
    succeeded: bool
    result: Optional[Union[ImpactAnalysisResult, TestGenerationResult]] = None
    error: Optional[FailureInfo] = None
    latency_ms: float = 0.0
