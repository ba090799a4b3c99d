"""Lead temperature classification and tracking rate from UTM fields.

Classification rules are data, not code: each rule maps a pattern to a
label and is matched in order against one UTM field (utm_source by
default). The first matching rule wins.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from pydantic import BaseModel


MATCH_CONTAINS = "contains"
MATCH_EXACT = "exact"
MATCH_REGEX = "regex"


class LeadTouch(BaseModel):
    """UTM attribution of a single lead."""

    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    conversion_date: Optional[date] = None


@dataclass(frozen=True)
class ClassificationRule:
    """Map values matching pattern to label."""

    pattern: str
    label: str
    match: str = MATCH_CONTAINS

    def matches(self, value: str) -> bool:
        value = value.lower()
        if self.match == MATCH_EXACT:
            return value == self.pattern.lower()
        if self.match == MATCH_REGEX:
            return re.search(self.pattern, value, re.IGNORECASE) is not None
        return self.pattern.lower() in value


DEFAULT_TEMPERATURE_RULES = (
    ClassificationRule(pattern="p1", label="cold"),
    ClassificationRule(pattern="p2", label="hot"),
)


class LeadSourceClassifier:
    """Configurable classifier over one UTM field."""

    def __init__(
        self,
        rules: Iterable[ClassificationRule] = DEFAULT_TEMPERATURE_RULES,
        field: str = "utm_source",
        default_label: str = "other",
    ) -> None:
        self.rules = tuple(rules)
        self.field = field
        self.default_label = default_label

    def classify(self, lead: LeadTouch) -> str:
        value = getattr(lead, self.field) or ""
        for rule in self.rules:
            if rule.matches(value):
                return rule.label
        return self.default_label


def classify_leads(
    leads: Iterable[LeadTouch],
    classifier: Optional[LeadSourceClassifier] = None,
) -> dict[str, int]:
    """Count leads per label; labels with zero leads are omitted."""
    classifier = classifier or LeadSourceClassifier()
    counts: dict[str, int] = {}
    for lead in leads:
        label = classifier.classify(lead)
        counts[label] = counts.get(label, 0) + 1
    return counts


def tracking_rate(leads: Iterable[LeadTouch]) -> float:
    """Percentage of leads carrying a non-blank utm_source."""
    total = 0
    tracked = 0
    for lead in leads:
        total += 1
        if lead.utm_source and lead.utm_source.strip():
            tracked += 1
    if total == 0:
        return 0.0
    return tracked / total * 100
