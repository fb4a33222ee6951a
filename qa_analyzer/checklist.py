"""
Static QA checklist catalog.

Feature tags a user can select, each with a label and the checklist items
worth putting in front of the model. ``build_context`` turns a tag selection
into the ``context`` sequence of a TaskRequest.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureTag:
    id: str
    label: str
    items: Tuple[str, ...]


CATALOG: Dict[str, FeatureTag] = {tag.id: tag for tag in (
    FeatureTag("auth", "Authentication & authorization", (
        "Login, logout and session expiry",
        "Password reset and account lockout",
        "Role and permission checks on every changed endpoint",
    )),
    FeatureTag("payments", "Payments & billing", (
        "Successful, declined and partially refunded payments",
        "Currency rounding and tax calculation",
        "Idempotency of payment submission",
    )),
    FeatureTag("forms", "Forms & input validation", (
        "Required fields, length limits and format validation",
        "Error messages and focus handling",
        "Copy-paste, autofill and special characters",
    )),
    FeatureTag("api", "Public & internal APIs", (
        "Backward compatibility of request and response fields",
        "Error codes and error body format",
        "Pagination, filtering and sorting",
    )),
    FeatureTag("ui", "User interface", (
        "Responsive layouts on mobile, tablet and desktop",
        "Keyboard navigation and screen reader labels",
        "Empty, loading and error states",
    )),
    FeatureTag("performance", "Performance", (
        "Response time under expected load",
        "Behaviour with large data sets",
        "Caching and cache invalidation",
    )),
    FeatureTag("security", "Security", (
        "Injection and XSS in every new input",
        "Sensitive data in logs, URLs and error messages",
        "CSRF protection and CORS configuration",
    )),
    FeatureTag("data", "Data & migrations", (
        "Migration on a copy of production-sized data",
        "Rollback of schema and data changes",
        "Consistency between services sharing the data",
    )),
    FeatureTag("notifications", "Notifications", (
        "Email, push and in-app delivery",
        "Opt-out preferences respected",
        "Templates render with missing optional fields",
    )),
    FeatureTag("localization", "Localization", (
        "Translations present for every new string",
        "Date, number and currency formats per locale",
        "Right-to-left layouts",
    )),
)}


def get_tag(tag_id: str) -> FeatureTag:
    return CATALOG[tag_id]


def build_context(tag_ids: Iterable[str]) -> Tuple[str, ...]:
    """
    Context lines for the selected tags.

    Each known tag contributes its label followed by its items, in selection
    order. Duplicate lines are dropped and unknown tags are skipped.
    """
    lines: List[str] = []
    seen = set()
    for tag_id in tag_ids:
        tag = CATALOG.get(tag_id.strip().lower())
        if tag is None:
            logger.warning(f"Ignoring unknown feature tag '{tag_id}'")
            continue
        for line in (tag.label, *tag.items):
            if line not in seen:
                seen.add(line)
                lines.append(line)
    return tuple(lines)
