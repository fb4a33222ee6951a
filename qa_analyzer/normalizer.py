"""
JSON extraction and schema normalization for LLM responses.

Handles common LLM output issues: markdown wrapping, prose around the JSON,
missing fields, null lists and out-of-range enum values. The normalizer
either returns a fully-typed result or raises SchemaInvalidError; callers
never see a partially-populated result.
"""

from __future__ import annotations
import json
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from pydantic import ValidationError

from .exceptions import SchemaInvalidError
from .models import (
    TaskKind,
    TaskResult,
    ImpactAnalysisResult,
    TestGenerationResult,
    SEVERITY_VALUES,
    REGRESSION_PRIORITY_VALUES,
    TEST_PRIORITY_VALUES,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'^```(?:json|JSON)?[ \t]*\n?|\n?```\s*$')
_OPENERS = {'{': '}', '[': ']'}


class ResponseNormalizer:
    """Turns raw provider text into a canonical TaskResult."""

    def normalize(self, raw_text: str, kind: TaskKind) -> TaskResult:
        """
        Parse and coerce a raw LLM response.

        Args:
            raw_text: Text returned by a provider adapter
            kind: Which result shape to produce

        Returns:
            ImpactAnalysisResult or TestGenerationResult

        Raises:
            SchemaInvalidError: If no usable structured payload can be extracted
        """
        if raw_text is None or not str(raw_text).strip():
            raise SchemaInvalidError("Empty response", raw_response=raw_text or "")

        last_error: Optional[SchemaInvalidError] = None
        for payload in self._candidate_payloads(str(raw_text)):
            try:
                return self._coerce(payload, kind)
            except SchemaInvalidError as e:
                logger.debug(f"Discarding candidate payload: {e}")
                last_error = e

        if last_error is not None:
            raise SchemaInvalidError(str(last_error), raw_response=raw_text)
        logger.debug(f"No JSON found in response: {str(raw_text)[:200]}...")
        raise SchemaInvalidError("No JSON object found in response", raw_response=raw_text)

    # ---------- extraction ----------

    def _candidate_payloads(self, raw_text: str) -> Iterator[Any]:
        """Yield parsed JSON payloads: the whole text first, then embedded spans."""
        cleaned = self._clean_response(raw_text)

        direct = self._parse_json(cleaned)
        if isinstance(direct, (dict, list)):
            yield direct
            return

        for span in self._balanced_spans(cleaned):
            parsed = self._parse_json(span)
            if isinstance(parsed, (dict, list)):
                yield parsed

    def _clean_response(self, response: str) -> str:
        """Remove a markdown code fence wrapping the whole response."""
        return _FENCE_RE.sub('', response.strip()).strip()

    def _parse_json(self, text: str) -> Optional[Any]:
        """Safely parse JSON, returning None on failure."""
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"JSON parse error: {e}")
            return None

    def _balanced_spans(self, text: str) -> Iterator[str]:
        """
        Yield top-level balanced {...} / [...] spans in order of appearance.

        String literals are skipped so braces inside quoted text do not
        affect nesting. Unbalanced openers are skipped, but pairs nested
        inside them are still found. Each character is scanned once.
        """
        pos = 0
        while pos < len(text):
            start = self._next_opener(text, pos)
            if start < 0:
                return
            stop, pairs = self._scan_from(text, start)
            outer_end = -1
            for open_idx, close_idx in sorted(pairs):
                if open_idx > outer_end:
                    yield text[open_idx:close_idx + 1]
                    outer_end = close_idx
            pos = stop + 1

    @staticmethod
    def _next_opener(text: str, pos: int) -> int:
        indexes = [i for i in (text.find('{', pos), text.find('[', pos)) if i >= 0]
        return min(indexes) if indexes else -1

    @staticmethod
    def _scan_from(text: str, start: int) -> Tuple[int, List[Tuple[int, int]]]:
        """
        Walk from the opener at ``start`` until it closes, a closer does not
        match, or the text ends.

        Returns the index the walk stopped at and the (open, close) index
        pairs completed on the way.
        """
        stack = [start]
        pairs: List[Tuple[int, int]] = []
        in_string = False
        escaped = False
        for i in range(start + 1, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == '\\':
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in _OPENERS:
                stack.append(i)
            elif ch in ('}', ']'):
                if ch != _OPENERS[text[stack[-1]]]:
                    return i, pairs
                pairs.append((stack.pop(), i))
                if not stack:
                    return i, pairs
        return len(text), pairs

    # ---------- coercion ----------

    def _coerce(self, payload: Any, kind: TaskKind) -> TaskResult:
        if kind == TaskKind.IMPACT_ANALYSIS:
            data = self._coerce_impact(payload)
            model = ImpactAnalysisResult
        else:
            data = self._coerce_tests(payload)
            model = TestGenerationResult

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise SchemaInvalidError(f"Payload does not match {model.__name__}: {e}") from e

    def _coerce_impact(self, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise SchemaInvalidError("Impact analysis payload must be a JSON object")

        summary = _scalar(_pick(payload, "summary"))
        if not summary:
            raise SchemaInvalidError("Impact analysis payload is missing 'summary'")

        areas = []
        for entry in _as_list(_pick(payload, "impactAreas", "impact_areas")):
            area = self._coerce_area(entry)
            if area is not None:
                areas.append(area)

        data = {
            "summary": summary,
            "impactAreas": areas,
            "specificTestCases": _string_list(_pick(payload, "specificTestCases", "specific_test_cases")),
            "edgeCases": _string_list(_pick(payload, "edgeCases", "edge_cases")),
            "downstreamRisks": _string_list(_pick(payload, "downstreamRisks", "downstream_risks")),
            "regressionPriority": _clamp(
                _pick(payload, "regressionPriority", "regression_priority"),
                REGRESSION_PRIORITY_VALUES
            ),
        }
        recommendation = _scalar(_pick(payload, "recommendation"))
        if recommendation:
            data["recommendation"] = recommendation
        return data

    def _coerce_area(self, entry: Any) -> Optional[Dict[str, Any]]:
        if isinstance(entry, str):
            return {"title": entry, "severity": SEVERITY_VALUES[0], "items": []} if entry.strip() else None
        if not isinstance(entry, dict):
            return None
        title = _scalar(_pick(entry, "title", "name", "area"))
        if not title:
            logger.debug(f"Dropping impact area without a title: {entry}")
            return None
        return {
            "title": title,
            "severity": _clamp(_pick(entry, "severity"), SEVERITY_VALUES),
            "items": _string_list(_pick(entry, "items")),
        }

    def _coerce_tests(self, payload: Any) -> Dict[str, Any]:
        if isinstance(payload, list):
            payload = {"testCategories": payload}
        if not isinstance(payload, dict):
            raise SchemaInvalidError("Test generation payload must be a JSON object")

        counter = _Counter()
        categories = []
        for entry in _as_list(_pick(payload, "testCategories", "test_categories")):
            category = self._coerce_category(entry, counter)
            if category is not None:
                categories.append(category)

        if not categories:
            raise SchemaInvalidError("Test generation payload has no test categories")

        return {
            "testCategories": categories,
            "edgeCases": _string_list(_pick(payload, "edgeCases", "edge_cases")),
        }

    def _coerce_category(self, entry: Any, counter: "_Counter") -> Optional[Dict[str, Any]]:
        if not isinstance(entry, dict):
            return None
        name = _scalar(_pick(entry, "category", "name", "title"))
        if not name:
            logger.debug(f"Dropping test category without a name: {entry}")
            return None
        tests = []
        for raw_test in _as_list(_pick(entry, "tests", "testCases", "test_cases")):
            if isinstance(raw_test, dict):
                tests.append(self._coerce_test(raw_test, counter))
            elif isinstance(raw_test, str) and raw_test.strip():
                tests.append(self._coerce_test({"title": raw_test}, counter))
        return {"category": name, "tests": tests}

    def _coerce_test(self, entry: Dict[str, Any], counter: "_Counter") -> Dict[str, Any]:
        test_id = _scalar(_pick(entry, "id"))
        counter.advance()
        if not test_id:
            test_id = f"TC-{counter.value:03d}"
        title = _scalar(_pick(entry, "title", "name", "description")) or test_id

        expected = _pick(entry, "expected", "expectedResult", "expected_result")
        if isinstance(expected, list):
            expected = "; ".join(_string_list(expected))
        return {
            "id": test_id,
            "title": title,
            "steps": _string_list(_pick(entry, "steps")),
            "expected": _scalar(expected) or "",
            "priority": _clamp(_pick(entry, "priority"), TEST_PRIORITY_VALUES),
        }


class _Counter:
    def __init__(self):
        self.value = 0

    def advance(self) -> None:
        self.value += 1


# ---------- helpers ----------

def _pick(data: Dict[str, Any], *names: str) -> Any:
    """First present, non-null value among alternative key spellings."""
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _scalar(value: Any) -> Optional[str]:
    """String form of a scalar; None for missing, blank or structured values."""
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value).strip()
    return text or None


def _string_list(value: Any) -> List[str]:
    items = []
    for item in _as_list(value):
        if isinstance(item, dict):
            text = _scalar(_pick(item, "title", "name", "description", "text"))
            if text is None:
                text = json.dumps(item, sort_keys=True)
        else:
            text = _scalar(item)
        if text:
            items.append(text)
    return items


def _clamp(value: Any, allowed: Sequence[str]) -> str:
    """Map value onto allowed case-insensitively; unknown values fall to the lowest."""
    if isinstance(value, str):
        wanted = value.strip().lower()
        for option in allowed:
            if option.lower() == wanted:
                return option
    if value is not None:
        logger.debug(f"Unrecognised enum value {value!r}; defaulting to {allowed[0]}")
    return allowed[0]


_default_normalizer = ResponseNormalizer()


def normalize(raw_text: str, kind: TaskKind) -> TaskResult:
    """Convenience wrapper around a shared ResponseNormalizer."""
    return _default_normalizer.normalize(raw_text, kind)
