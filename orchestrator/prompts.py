"""Prompt templates and request-context helpers."""

import re
from collections.abc import Iterable
from datetime import datetime
from typing import Final

from .constants import DEFAULT_MOTION_TYPE, JURISDICTIONS, MOTION_TYPES

MOTION_KEYWORDS: Final[list[str]] = [
    "motion",
    "draft",
    "charter",
    "s.8",
    "s.24",
    "exclusion",
    "disclosure",
    "stay of proceedings",
    "factum",
    "brief",
]

CASE_LAW_SUFFIX: Final[str] = (
    " Include extensive case law citations. "
    "Reference the most relevant and recent court decisions."
)

PROCEED_WITH_DEFAULTS: Final[str] = (
    "I don't have more details right now. Please proceed with the information "
    "provided and use reasonable professional defaults for any missing fields. "
    "Generate the motion now."
)
PROCEED_DISPLAY_TEXT: Final[str] = "Generate with the details provided"

FEEDBACK_TEMPLATE: Final[str] = """The user originally asked: "{query}"

The most recent AI response was:
\"\"\"
{response}
\"\"\"

The user then provided this feedback: "{feedback}"

Please provide an improved, refined response that addresses the user's feedback while building on the previous answer. Be thorough, detailed, and specific."""

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|"
    "November|December"
)

# (pattern, strptime formats tried in order)
_DATE_PATTERNS: Final[list[tuple[re.Pattern[str], tuple[str, ...]]]] = [
    (re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"), ("%Y-%m-%d",)),
    (re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4})\b"), ("%m/%d/%Y",)),
    (re.compile(r"\b(\d{1,2}-\d{1,2}-\d{4})\b"), ("%m-%d-%Y",)),
    (
        re.compile(rf"\b((?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}})\b", re.IGNORECASE),
        ("%B %d, %Y", "%B %d %Y"),
    ),
    (
        re.compile(rf"\b(\d{{1,2}}\s+(?:{_MONTHS})\s+\d{{4}})\b", re.IGNORECASE),
        ("%d %B %Y",),
    ),
]


def is_motion_intent(text: str) -> bool:
    """Check whether a free-form query asks for a motion to be drafted."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in MOTION_KEYWORDS)


def detect_motion_type(text: str) -> str:
    """Guess the motion type from the user's wording."""
    lowered = text.lower()
    if "disclosure" in lowered:
        return "disclosure"
    if "stay" in lowered:
        return "stay_of_proceedings"
    return DEFAULT_MOTION_TYPE


def motion_label(motion_type: str) -> str:
    """Human-readable motion type label."""
    return MOTION_TYPES.get(motion_type, "motion")


def jurisdiction_context(country: str, region: str) -> str:
    """Bracketed jurisdiction hint prepended to legal requests."""
    info = JURISDICTIONS.get(country)
    if info is None:
        return (
            f"[Jurisdiction: {country}, {region}. "
            f"Apply US law for this jurisdiction.]"
        )

    region_label = info["regions"].get(region, region)
    return (
        f"[Jurisdiction: {info['label']}, {region_label}. "
        f"Apply {info['law']} law for this jurisdiction.]"
    )


def uploaded_documents_context(names: Iterable[str], analyze: bool = False) -> str:
    """Context hint naming documents the user just uploaded."""
    names = list(names)
    if not names:
        return ""
    suffix = " Analyze them in context of the request." if analyze else ""
    return (
        f"[User has uploaded these documents for reference: "
        f"{', '.join(names)}.{suffix}]"
    )


def selected_documents_context(names: Iterable[str], reference: bool = False) -> str:
    """Context hint naming existing documents the user selected."""
    names = list(names)
    if not names:
        return ""
    suffix = " Use them as reference for the request." if reference else ""
    return (
        f"[User has selected these existing documents as context: "
        f"{', '.join(names)}.{suffix}]"
    )


def build_context_prefix(parts: Iterable[str]) -> str:
    """Join non-empty context hints into a prefix ending with a space."""
    kept = [p for p in parts if p]
    return " ".join(kept) + " " if kept else ""


def feedback_prompt(query: str, response: str, feedback: str) -> str:
    """Compound prompt asking the second provider to improve an answer."""
    return FEEDBACK_TEMPLATE.format(query=query, response=response, feedback=feedback)


def refinement_instruction(feedback: str) -> str:
    """Narrative sent with a post-completion refinement call."""
    return f'User refinement request: "{feedback}".{CASE_LAW_SUFFIX}'


def with_case_law(description: str) -> str:
    """Ask the generator for thorough case law citations."""
    return description + CASE_LAW_SUFFIX


def detect_future_dates(text: str, now: datetime | None = None) -> list[str]:
    """Find dates in ``text`` that lie in the future, in order of appearance."""
    now = now or datetime.now()
    hits: list[tuple[int, str]] = []

    for pattern, formats in _DATE_PATTERNS:
        for match in pattern.finditer(text):
            raw = match.group(1)
            parsed = _parse_date(raw, formats)
            if parsed is not None and parsed > now:
                hits.append((match.start(1), raw))

    found: list[str] = []
    for _, raw in sorted(hits):
        if raw not in found:
            found.append(raw)
    return found


def _parse_date(raw: str, formats: tuple[str, ...]) -> datetime | None:
    normalized = " ".join(raw.split())
    for fmt in formats:
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue
    return None
