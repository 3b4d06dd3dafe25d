from __future__ import annotations

import pytest

from jobboard_worker.jobs.employers import EmployerLookup
from jobboard_worker.jobs.second_chance import (
    EXCLUDES,
    FAIR_CHANCE,
    UNKNOWN,
    EmployerSignal,
    OnetSignal,
    StanceSignal,
    assess_job,
    compute_score,
    detect_stance,
    employer_signal,
    onet_signal,
    score_tier,
    stance_signal,
)

FILLER = " Duties include stocking shelves, helping customers and keeping the floor tidy."
EXACT = EmployerLookup(match_type="exact", matched_name="Dave's Killer Bread")


def _score(description: str | None, lookup: EmployerLookup = EmployerLookup(), onet: str | None = None):
    stance, reasoning = detect_stance(description)
    return compute_score(stance_signal(stance, reasoning), employer_signal(lookup), onet_signal(onet))


def test_short_description_has_unknown_stance() -> None:
    assert detect_stance("Stocker needed") == (UNKNOWN, "No job description available for analysis")
    assert detect_stance(None)[0] == UNKNOWN


def test_exclusion_beats_welcoming_language() -> None:
    stance, reasoning = detect_stance("We are a fair chance employer. Clean background required." + FILLER)
    assert stance == EXCLUDES
    assert "clean background required" in reasoning


def test_fair_chance_phrase_detected_case_insensitively() -> None:
    stance, _ = detect_stance("We Consider Qualified Applicants With Criminal Histories." + FILLER)
    assert stance == FAIR_CHANCE


def test_explicit_exclusion_overrides_everything() -> None:
    result = _score("Must pass a Level 2 background screening." + FILLER, EXACT, "35-2014")
    assert (result.score, result.tier, result.confidence) == (10, "unlikely", 0.95)
    assert result.signals[-1] == "OVERRIDE:explicitly_excludes"
    assert result.is_second_chance is False


def test_restricted_occupation_overrides_fair_chance_stance() -> None:
    result = _score("Fair chance hiring is part of who we are." + FILLER, onet="33-3051.00")
    assert (result.score, result.tier) == (15, "unlikely")
    assert "onet:restricted:33-3051" in result.signals


def test_fair_chance_statement_scores_high() -> None:
    plain = _score("Felony friendly warehouse team hiring now." + FILLER)
    corroborated = _score("Felony friendly warehouse team hiring now." + FILLER, EXACT)

    assert (plain.score, plain.tier) == (85, "high")
    assert (corroborated.score, corroborated.tier) == (90, "high")
    assert "BOOST:employer_corroboration" in corroborated.signals
    assert "BOOST:employer_corroboration" not in plain.signals


def test_employer_and_occupation_blend() -> None:
    result = _score("Prep cook wanted for a busy kitchen downtown." + FILLER, EXACT, "35-2014")

    assert result.score == 79
    assert result.tier == "high"
    assert result.confidence == 0.7
    assert result.reasoning.startswith("Dave's Killer Bread is a known fair chance employer")


def test_no_signals_lands_in_low_tier() -> None:
    result = _score("Prep cook wanted for a busy kitchen downtown." + FILLER)

    assert result.score == 50
    assert result.tier == "low"
    assert result.confidence == pytest.approx(0.27)
    assert result.reasoning == "No explicit signals; based on employer and industry heuristics"


def test_insufficient_confidence_is_unknown() -> None:
    result = compute_score(
        StanceSignal(50, 0.2, [], stance=UNKNOWN),
        EmployerSignal(50, 0.05, []),
        OnetSignal(50, 0.05, []),
    )
    assert (result.score, result.tier, result.confidence) == (50, "unknown", 0.1)
    assert result.signals == ["INSUFFICIENT_DATA"]


@pytest.mark.parametrize(
    ("code", "score", "signal"),
    [
        ("35-9011.00", 65, "onet:group:35:+15"),
        ("23-1011", 35, "onet:group:23:-15"),
        ("35-2014.00", 75, "onet:favorable:35-2014"),
        ("not-a-code", 50, "onet:missing"),
        (None, 50, "onet:missing"),
    ],
)
def test_onet_signal(code: str | None, score: int, signal: str) -> None:
    result = onet_signal(code)
    assert result.score == score
    assert result.signals == [signal]


def test_employer_signal_match_types() -> None:
    assert employer_signal(EXACT).score == 80
    assert employer_signal(EmployerLookup("fuzzy", "Acme", 0.9)).signals == ["employer:fuzzy:Acme:0.90"]
    assert employer_signal(EmployerLookup("fuzzy", "Acme", 0.8)).signals == ["employer:unknown"]
    with pytest.raises(ValueError, match="Invalid employer similarity"):
        employer_signal(EmployerLookup("fuzzy", "Acme", 1.5))


@pytest.mark.parametrize(
    ("score", "tier"),
    [(100, "high"), (75, "high"), (74, "medium"), (55, "medium"), (54, "low"), (35, "low"), (34, "unlikely")],
)
def test_score_tier_boundaries(score: int, tier: str) -> None:
    assert score_tier(score) == tier


def test_assess_job_fields() -> None:
    fields = assess_job(
        {"description": "Felons welcome. No background check for this role." + FILLER, "onet_code": None},
        EmployerLookup(),
    )
    assert fields["second_chance"] is True
    assert fields["second_chance_tier"] == "high"
    assert fields["second_chance_score"] == 85
    assert fields["no_background_check"] is True
    assert fields["second_chance_reasoning"].startswith("Job explicitly states fair chance hiring")
