"""
Testability heuristics for acceptance criteria.

The heuristic is a versioned table of named regex rules. A criterion counts
as testable when at least one rule matches; the matched rule names are kept
per criterion so a low testability score can be traced back to the exact
criteria that failed to match.
"""

import re
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

TESTABILITY_HEURISTIC_VERSION = "2026-01-07a"
DEFAULT_TESTABILITY_THRESHOLD = 0.5
AC_PREVIEW_LENGTH = 120


@dataclass(frozen=True)
class PatternRule:
    """A named predicate over one acceptance criterion."""

    name: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


def make_rule(name: str, regex: str) -> PatternRule:
    return PatternRule(name=name, pattern=re.compile(regex, re.IGNORECASE))


TESTABILITY_RULES: tuple[PatternRule, ...] = (
    make_rule(
        "actionVerbPrefix",
        r"^(user(s)? can|system|given|when|then|verify|ensure|check|validate|confirm|display|show"
        r"|allow|prevent|enable|disable|must|should|shall|the user|the system|a user)",
    ),
    make_rule(
        "conditionalTemporal",
        r"^(if|invalid|valid|on|upon|after|before|during|while|once|unless|following|prior to)\b",
    ),
    make_rule(
        "actionVerbsAnywhere",
        r"^[A-Z][a-z]+(\s+[a-z]+)?\s+(with|in|out|up|on|off|to|from|into|for|at|by|using|via|through"
        r"|requests?|actions?|attempts?|clears?|loads?|shows?|displays?|returns?|triggers?|creates?"
        r"|updates?|deletes?|sends?|receives?|stores?|retrieves?|validates?|succeeds?|fails?|completes?)\b",
    ),
    make_rule(
        "securityTerms",
        r"\b(https|http-only|httponly|samesite|secure cookie|encrypted|hashed|authenticated|authorized"
        r"|ssl|tls|csrf|xss|sanitized|escaped|token|jwt|oauth|session)\b",
    ),
    make_rule(
        "performanceBounds",
        r"\b(within|under|less than|at most|maximum|max|at least|minimum|min|<|>|≤|≥)\s*\d+\s*"
        r"(ms|milliseconds?|seconds?|s|minutes?|m|%|percent)?\b",
    ),
    make_rule(
        "passiveVerifiable",
        r"\b(is|are|was|were|been|being)\s+(transmitted|stored|logged|displayed|shown|hidden|validated"
        r"|checked|verified|saved|deleted|created|updated|sent|received|processed|encrypted|hashed"
        r"|cached|loaded|rendered|accessible|cleared|returned|redirected|maintained|preserved|retained)\b",
    ),
    make_rule(
        "stateOutcomeVerbs",
        r"\b(remains|stays|becomes|appears|disappears|shows|hides|contains|includes|excludes|matches"
        r"|equals|returns|responds|redirects|navigates|transitions|loads|clears|resets|expires|succeeds"
        r"|fails|completes|triggers|activates|deactivates)\b",
    ),
    make_rule(
        "negationPattern",
        r"\b(do not|does not|doesn't|will not|won't|never|cannot|can't|prevent|block|deny|reject|forbid)\b",
    ),
)


@dataclass
class CriterionAnalysis:
    """Rule matches for a single acceptance criterion."""

    ac_index: int
    ac_text: str
    matched_patterns: list[str] = field(default_factory=list)

    @property
    def is_testable(self) -> bool:
        return len(self.matched_patterns) > 0

    def to_json(self) -> dict:
        return {
            "ac_index": self.ac_index,
            "ac_text": self.ac_text,
            "matched_patterns": self.matched_patterns,
            "is_testable": self.is_testable,
        }


@dataclass
class CriteriaReport:
    """Testability analysis over all criteria of a story."""

    details: list[CriterionAnalysis] = field(default_factory=list)
    threshold: float = DEFAULT_TESTABILITY_THRESHOLD
    heuristic_version: str = TESTABILITY_HEURISTIC_VERSION

    @property
    def total(self) -> int:
        return len(self.details)

    @property
    def testable_count(self) -> int:
        return sum(1 for d in self.details if d.is_testable)

    @property
    def ratio(self) -> float:
        return self.testable_count / self.total if self.total else 0.0

    @property
    def passed(self) -> bool:
        return self.ratio >= self.threshold

    @property
    def unclear_indices(self) -> list[int]:
        return [d.ac_index for d in self.details if not d.is_testable]

    def to_json(self) -> dict:
        return {
            "heuristic_version": self.heuristic_version,
            "total_ac": self.total,
            "testable_count": self.testable_count,
            "testable_ratio": round(self.ratio, 2),
            "threshold": self.threshold,
            "passed": self.passed,
            "ac_details": [d.to_json() for d in self.details],
        }


def _preview(text: str) -> str:
    if len(text) > AC_PREVIEW_LENGTH:
        return text[:AC_PREVIEW_LENGTH] + "..."
    return text


def analyze_criterion(
    index: int,
    criterion: str,
    rules: tuple[PatternRule, ...] = TESTABILITY_RULES,
) -> CriterionAnalysis:
    """Run one criterion through every rule and record which ones matched."""
    text = criterion.strip()
    matched = [rule.name for rule in rules if rule.matches(text)]
    return CriterionAnalysis(ac_index=index, ac_text=_preview(criterion), matched_patterns=matched)


def analyze_testability(
    criteria: list[str],
    rules: tuple[PatternRule, ...] = TESTABILITY_RULES,
    threshold: float = DEFAULT_TESTABILITY_THRESHOLD,
) -> CriteriaReport:
    """
    Analyze every acceptance criterion against the rule table.

    Args:
        criteria: Acceptance criteria of the story
        rules: Rule table (defaults to TESTABILITY_RULES)
        threshold: Ratio of testable criteria needed for report.passed

    Returns:
        CriteriaReport with per-criterion details
    """
    report = CriteriaReport(
        details=[analyze_criterion(i, ac, rules) for i, ac in enumerate(criteria)],
        threshold=threshold,
    )
    logger.info(
        f"testability: version={report.heuristic_version} total={report.total} "
        f"testable={report.testable_count} ratio={report.ratio:.2f} passed={report.passed}"
    )
    return report
