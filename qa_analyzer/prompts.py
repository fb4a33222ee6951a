"""
Prompt construction for provider adapters.

Every adapter sends the same two pieces of text: a system prompt that pins
the model to JSON output for the requested artifact, and a user prompt with
the source text plus any checklist context. Adapters only differ in how they
place these two strings into their wire payload.
"""

from __future__ import annotations
from dataclasses import dataclass

from .models import TaskKind, TaskRequest


SYSTEM_PROMPTS = {
    TaskKind.IMPACT_ANALYSIS: (
        "You are a senior QA engineer performing change impact analysis. "
        "Return JSON only matching the requested structure. "
        "No markdown formatting, no explanations, just valid JSON."
    ),
    TaskKind.TEST_GENERATION: (
        "You are a QA test case generator working from product requirements. "
        "Return JSON only matching the requested structure. "
        "No markdown formatting, no explanations, just valid JSON."
    ),
}

IMPACT_SHAPE = """{
  "summary": "One or two sentences describing the change and its blast radius",
  "impactAreas": [
    {
      "title": "Affected area",
      "severity": "low | medium | high | critical",
      "items": ["What to verify in this area"]
    }
  ],
  "specificTestCases": ["Concrete test to run"],
  "edgeCases": ["Edge case worth checking"],
  "downstreamRisks": ["System or feature that may break as a side effect"],
  "regressionPriority": "LOW | MEDIUM | HIGH | CRITICAL",
  "recommendation": "Short advice for the QA team"
}"""

TESTS_SHAPE = """{
  "testCategories": [
    {
      "category": "Functional",
      "tests": [
        {
          "id": "TC-001",
          "title": "Descriptive test title",
          "steps": ["Step 1", "Step 2"],
          "expected": "Expected result",
          "priority": "low | medium | high"
        }
      ]
    }
  ],
  "edgeCases": ["Edge case worth checking"]
}"""


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


def build_prompt(request: TaskRequest) -> Prompt:
    """Render the system and user prompt for a request."""
    if request.kind == TaskKind.IMPACT_ANALYSIS:
        user = _impact_prompt(request)
    else:
        user = _tests_prompt(request)
    return Prompt(system=SYSTEM_PROMPTS[request.kind], user=user)


def _context_block(request: TaskRequest) -> str:
    if not request.context:
        return ""
    lines = "\n".join(f"- {item}" for item in request.context)
    return f"\n\nRELEVANT AREAS AND CHECKLIST ITEMS:\n{lines}"


def _impact_prompt(request: TaskRequest) -> str:
    return f"""Analyze the impact of the following change and decide what QA must cover.

CHANGE DESCRIPTION:
{request.input_text.strip()}{_context_block(request)}

REQUIREMENTS:
1. List every product area the change can affect, with a severity and concrete checks
2. Propose specific test cases for the change itself
3. List edge cases and downstream risks (integrations, data, permissions, performance)
4. Set regressionPriority from the overall risk:
   - CRITICAL: payments, authentication, data loss, security
   - HIGH: core user flows, shared components
   - MEDIUM: isolated features with some dependencies
   - LOW: cosmetic or informational changes

IMPORTANT: Return ONLY the JSON data structure below. NO explanations, NO markdown formatting.

{IMPACT_SHAPE}"""


def _tests_prompt(request: TaskRequest) -> str:
    return f"""Generate detailed, executable test cases for the following requirements document.

REQUIREMENTS DOCUMENT:
{request.input_text.strip()}{_context_block(request)}

REQUIREMENTS:
1. Group test cases into categories (Functional, Negative, Boundary, Integration, ...)
2. Each test case must have:
   - id: TC-001, TC-002, TC-003, etc. (sequential numbering)
   - title: what the test verifies
   - steps: explicit step-by-step actions
   - expected: the observable expected result
   - priority: "low", "medium" or "high"
3. Cover both positive and negative flows for every requirement
4. List remaining edge cases separately

IMPORTANT: Return ONLY the JSON data structure below. NO explanations, NO markdown formatting.

{TESTS_SHAPE}"""
