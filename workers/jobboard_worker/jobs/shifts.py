from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any

SHIFT_NAMES = ("morning", "afternoon", "evening", "overnight", "flexible")

_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "morning": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"\bmorning\b",
            r"\bam\s*shift",
            r"\b[5-9]\s*am\b",
            r"\b1[0-1]\s*am\b",
            r"\bday\s*shift",
            r"\bfirst\s*shift",
            r"\b1st\s*shift",
            r"\bopening\s*shift",
            r"\bearly\s*morning",
        )
    ),
    "afternoon": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"\bafternoon\b",
            r"\bmid\s*day",
            r"\b1[2-5]\s*pm\b",
            r"\bsecond\s*shift",
            r"\b2nd\s*shift",
            r"\bswing\s*shift",
        )
    ),
    "evening": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"\bevening\b",
            r"\bnight\s*shift",
            r"\bpm\s*shift",
            r"\b[5-9]\s*pm\b",
            r"\b1[0-1]\s*pm\b",
            r"\bthird\s*shift",
            r"\b3rd\s*shift",
            r"\bclosing\s*shift",
        )
    ),
    "overnight": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"\bovernight\b",
            r"\bgraveyard",
            r"\b12\s*am\b",
            r"\bmidnight",
            r"\bover\s*night",
            r"\ball\s*night",
        )
    ),
    "flexible": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"\bflexible\s*(hours|schedule|shifts?)",
            r"\bvaries\b",
            r"\bopen\s*availability",
            r"\bself[\s-]?schedul",
            r"\bchoose\s*your\s*(own\s*)?(hours|schedule)",
            r"\bset\s*your\s*own",
            r"\bpart[\s-]?time",
        )
    ),
}

_SCHEDULE_KEYWORDS = {
    "morning": ("day", "morning"),
    "afternoon": ("afternoon", "mid"),
    "evening": ("evening", "night shift"),
    "overnight": ("overnight", "graveyard"),
    "flexible": ("flexible", "varies", "rotating"),
}


@dataclass(frozen=True, slots=True)
class ShiftResult:
    morning: bool = False
    afternoon: bool = False
    evening: bool = False
    overnight: bool = False
    flexible: bool = False
    source: str = "unknown"

    def as_signals(self) -> dict[str, Any]:
        signals: dict[str, Any] = {f"shift_{name}": getattr(self, name) for name in SHIFT_NAMES}
        signals["shift_source"] = self.source
        return signals


def extract_shifts(job: dict[str, Any]) -> ShiftResult:
    """Infer shift windows for a scraped job.

    A structured work schedule wins when the scraper captured one. Otherwise
    the title and description are scanned with keyword patterns. Jobs with
    no text at all are marked flexible with an ``unknown`` source.
    """
    schedule = job.get("work_schedule")
    if isinstance(schedule, list) and schedule:
        return _from_work_schedule([str(item) for item in schedule])

    title = job.get("title") or ""
    description = job.get("description") or ""
    if title or description:
        return _from_text(f"{title} {description}")

    return ShiftResult(flexible=True, source="unknown")


def _from_work_schedule(schedule: list[str]) -> ShiftResult:
    flags = dict.fromkeys(SHIFT_NAMES, False)
    for item in schedule:
        lowered = item.lower()
        for name, keywords in _SCHEDULE_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                flags[name] = True

    # bare "Night" without an overnight marker reads as an evening shift
    if "night" in " ".join(schedule).lower() and not flags["overnight"] and not flags["evening"]:
        flags["evening"] = True
    return ShiftResult(**flags, source="workSchedule")


def _from_text(text: str) -> ShiftResult:
    flags = {name: any(pattern.search(text) for pattern in patterns) for name, patterns in _PATTERNS.items()}
    return ShiftResult(**flags, source="regex")
