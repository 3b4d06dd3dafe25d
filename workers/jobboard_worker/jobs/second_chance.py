"""Second-chance scoring for scraped jobs.

Three signals are combined into a 0-100 score and a tier:

* the posting's stance on criminal records, detected from description phrases,
* a match against a list of known fair-chance employers,
* the O*NET occupation code when the scraper supplied one.

Explicit exclusion and restricted occupations override everything else. An
explicit fair-chance statement scores high. Otherwise the employer and O*NET
signals are blended 70/30, each weighted by its own confidence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any

from jobboard_worker.jobs.employers import EmployerLookup

FAIR_CHANCE = "explicitly_fair_chance"
EXCLUDES = "explicitly_excludes"
UNKNOWN = "unknown"

TIER_THRESHOLDS = (("high", 75), ("medium", 55), ("low", 35))
EMPLOYER_WEIGHT = 0.7
ONET_WEIGHT = 0.3
MIN_TOTAL_WEIGHT = 0.1
BLENDED_CONFIDENCE_CAP = 0.7
MIN_DESCRIPTION_CHARS = 50

FAIR_CHANCE_PHRASES = (
    "consider qualified applicants with arrest and conviction records",
    "consider qualified applicants with criminal histories",
    "will consider for employment qualified applicants with criminal histories",
    "consider employment of qualified applicants with arrest",
    "fair chance ordinance",
    "fair chance initiative",
    "fair chance act",
    "fair chance employer",
    "fair chance hiring",
    "ban the box",
    "second chance employer",
    "second-chance employer",
    "second chance friendly",
    "felony friendly",
    "felon friendly",
    "we hire felons",
    "felons welcome",
    "felons encouraged to apply",
    "criminal record will not automatically disqualify",
    "criminal history will not automatically disqualify",
    "conviction will not automatically disqualify",
    "criminal record does not disqualify",
    "does not automatically bar",
    "individualized assessment",
    "background friendly",
    "all backgrounds welcome",
    "open to all backgrounds",
    "justice-involved",
    "justice involved",
    "formerly incarcerated",
    "returning citizens",
    "reentry program",
    "re-entry program",
    "reentry friendly",
)

EXCLUSION_PHRASES = (
    "no felonies",
    "no felony convictions",
    "clean criminal record",
    "clean background required",
    "clean record required",
    "must have clean background",
    "no criminal history",
    "criminal history will disqualify",
    "certain convictions may disqualify",
    "conviction may affect eligibility",
    "level 2 background screening",
    "level ii background",
    "ahca clearance",
    "ahca background screening",
    "dcf background check",
    "dcf clearance",
    "tsa background check",
    "tsa clearance",
    "sida badge",
    "gaming license",
    "class g license",
    "comprehensive background investigation",
    "security clearance",
)

NO_BACKGROUND_CHECK_PHRASES = (
    "no background check",
    "no background checks",
    "background check not required",
    "no bg check",
)

ONET_MAJOR_GROUP_SCORES = {
    "35": 15,
    "37": 12,
    "47": 15,
    "49": 10,
    "51": 12,
    "53": 10,
    "39": 0,
    "41": 0,
    "43": 0,
    "45": 5,
    "11": -5,
    "13": -5,
    "15": 0,
    "17": -5,
    "19": -5,
    "21": -10,
    "23": -15,
    "25": -20,
    "27": 0,
    "29": -15,
    "31": -5,
    "33": -25,
}

# legally barred for people with felony convictions in most jurisdictions
RESTRICTED_OCCUPATIONS = frozenset(
    {"33-3051", "33-3012", "33-1012", "33-3021", "33-3011", "33-1011", "33-9021"}
)

FAVORABLE_OCCUPATIONS = frozenset(
    {
        "35-2014",
        "35-2021",
        "35-3023",
        "53-7062",
        "53-7065",
        "47-2061",
        "47-2051",
        "47-2031",
        "51-9198",
        "37-2011",
        "37-3011",
    }
)

_ONET_CODE = re.compile(r"^\d{2}-\d{4}(\.\d{2})?$")


@dataclass(slots=True)
class Signal:
    score: float
    confidence: float
    signals: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StanceSignal(Signal):
    stance: str = UNKNOWN
    reasoning: str = ""


@dataclass(slots=True)
class EmployerSignal(Signal):
    match_type: str = "none"
    matched_name: str | None = None


@dataclass(slots=True)
class OnetSignal(Signal):
    major_group: str = "unknown"
    restricted: bool = False


@dataclass(slots=True)
class SecondChanceScore:
    score: int
    tier: str
    confidence: float
    signals: list[str]
    reasoning: str

    @property
    def is_second_chance(self) -> bool:
        return self.tier in {"high", "medium"}


def detect_stance(description: str | None) -> tuple[str, str]:
    """Classify a description as fair-chance, excluding or unknown.

    Exclusionary language wins over welcoming language when both appear.
    """
    if not description or len(description.strip()) < MIN_DESCRIPTION_CHARS:
        return UNKNOWN, "No job description available for analysis"

    text = description.lower()
    excluding = [phrase for phrase in EXCLUSION_PHRASES if phrase in text]
    if excluding:
        return EXCLUDES, f'Posting says "{excluding[0]}"'
    welcoming = [phrase for phrase in FAIR_CHANCE_PHRASES if phrase in text]
    if welcoming:
        return FAIR_CHANCE, f'Posting says "{welcoming[0]}"'
    return UNKNOWN, "No statement about criminal history"


def mentions_no_background_check(description: str | None) -> bool:
    text = (description or "").lower()
    return any(phrase in text for phrase in NO_BACKGROUND_CHECK_PHRASES)


def stance_signal(stance: str, reasoning: str) -> StanceSignal:
    if stance == EXCLUDES:
        return StanceSignal(0, 0.95, [f"stance:{EXCLUDES}"], stance=stance, reasoning=reasoning)
    if stance == FAIR_CHANCE:
        return StanceSignal(85, 0.9, [f"stance:{FAIR_CHANCE}"], stance=stance, reasoning=reasoning)
    return StanceSignal(50, 0.2, [f"stance:{UNKNOWN}"], stance=UNKNOWN, reasoning=reasoning)


def employer_signal(lookup: EmployerLookup) -> EmployerSignal:
    if lookup.similarity is not None and not 0.0 <= lookup.similarity <= 1.0:
        raise ValueError(f"Invalid employer similarity: {lookup.similarity} (must be 0-1)")
    if lookup.match_type == "exact":
        return EmployerSignal(
            80, 0.95, [f"employer:exact:{lookup.matched_name}"], match_type="exact", matched_name=lookup.matched_name
        )
    if lookup.match_type == "fuzzy" and lookup.similarity and lookup.similarity > 0.85:
        return EmployerSignal(
            70,
            0.8,
            [f"employer:fuzzy:{lookup.matched_name}:{lookup.similarity:.2f}"],
            match_type="fuzzy",
            matched_name=lookup.matched_name,
        )
    return EmployerSignal(50, 0.3, ["employer:unknown"])


def onet_signal(code: str | None) -> OnetSignal:
    if not code or not _ONET_CODE.match(code):
        return OnetSignal(50, 0.2, ["onet:missing"])

    major_group = code[:2]
    detailed = code[:7]
    if detailed in RESTRICTED_OCCUPATIONS:
        return OnetSignal(10, 0.9, [f"onet:restricted:{detailed}"], major_group=major_group, restricted=True)
    if detailed in FAVORABLE_OCCUPATIONS:
        return OnetSignal(75, 0.8, [f"onet:favorable:{detailed}"], major_group=major_group)

    adjustment = ONET_MAJOR_GROUP_SCORES.get(major_group, 0)
    return OnetSignal(50 + adjustment, 0.7, [f"onet:group:{major_group}:{adjustment:+d}"], major_group=major_group)


def score_tier(score: float) -> str:
    for tier, threshold in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return "unlikely"


def compute_score(stance: StanceSignal, employer: EmployerSignal, onet: OnetSignal) -> SecondChanceScore:
    signals = [*stance.signals, *employer.signals, *onet.signals]

    if stance.stance == EXCLUDES:
        return SecondChanceScore(
            score=10,
            tier="unlikely",
            confidence=0.95,
            signals=[*signals, "OVERRIDE:explicitly_excludes"],
            reasoning=f"Job explicitly excludes candidates with criminal history: {stance.reasoning}",
        )

    if onet.restricted:
        return SecondChanceScore(
            score=15,
            tier="unlikely",
            confidence=0.9,
            signals=[*signals, "OVERRIDE:restricted_occupation"],
            reasoning=f"{onet.major_group} occupations typically bar felony convictions",
        )

    if stance.stance == FAIR_CHANCE:
        corroborated = employer.match_type != "none"
        if corroborated:
            signals.append("BOOST:employer_corroboration")
        return SecondChanceScore(
            score=90 if corroborated else 85,
            tier="high",
            confidence=0.9,
            signals=[*signals, "OVERRIDE:explicitly_fair_chance"],
            reasoning=f"Job explicitly states fair chance hiring: {stance.reasoning}",
        )

    total_weight = EMPLOYER_WEIGHT * employer.confidence + ONET_WEIGHT * onet.confidence
    if total_weight < MIN_TOTAL_WEIGHT:
        return SecondChanceScore(
            score=50,
            tier="unknown",
            confidence=0.1,
            signals=[*signals, "INSUFFICIENT_DATA"],
            reasoning="No confident signals available to make an assessment",
        )

    weighted = (
        employer.score * EMPLOYER_WEIGHT * employer.confidence + onet.score * ONET_WEIGHT * onet.confidence
    ) / total_weight
    score = round(max(0.0, min(100.0, weighted)))
    return SecondChanceScore(
        score=score,
        tier=score_tier(score),
        confidence=min(BLENDED_CONFIDENCE_CAP, total_weight),
        signals=signals,
        reasoning=_heuristic_reasoning(employer, onet, score),
    )


def _heuristic_reasoning(employer: EmployerSignal, onet: OnetSignal, score: int) -> str:
    parts: list[str] = []
    if employer.match_type == "exact":
        parts.append(f"{employer.matched_name or 'Employer'} is a known fair chance employer")
    elif employer.match_type == "fuzzy":
        parts.append("Employer likely matches known fair chance employer")

    if onet.score > 60:
        parts.append(f"{onet.major_group} industry typically hires second chance candidates")
    elif onet.score < 40:
        parts.append(f"{onet.major_group} industry may have restrictions")

    if parts:
        return "; ".join(parts)
    if score >= 55:
        return "Employer/industry signals suggest this may be second-chance friendly"
    if score <= 45:
        return "Limited information available; proceed with caution"
    return "No explicit signals; based on employer and industry heuristics"


def assess_job(job: dict[str, Any], employer_lookup: EmployerLookup) -> dict[str, Any]:
    """Score one scraped job and return the enrichment fields for it."""
    stance, reasoning = detect_stance(job.get("description"))
    result = compute_score(
        stance_signal(stance, reasoning),
        employer_signal(employer_lookup),
        onet_signal(job.get("onet_code")),
    )
    return {
        "second_chance": result.is_second_chance,
        "second_chance_tier": result.tier,
        "second_chance_score": result.score,
        "second_chance_confidence": result.confidence,
        "second_chance_signals": result.signals,
        "second_chance_reasoning": result.reasoning,
        "no_background_check": mentions_no_background_check(job.get("description")),
    }
