from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from jobboard_worker.jobs.employers import EmployerLookup, FairChanceEmployers, normalize_company_name, normalized_key


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Dave's Killer Bread, Inc.", "daves killer bread"),
        ("The Home Depot", "home depot"),
        ("Ben & Jerry's Homemade Holdings LLC", "ben and jerrys homemade"),
        ("Walmart Stores", "walmart"),
        ("Coca-Cola Beverages", "coca cola"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_company_name(name: str | None, expected: str) -> None:
    assert normalize_company_name(name) == expected


def test_lookup_matches_on_normalized_key() -> None:
    employers = FairChanceEmployers(["Dave's Killer Bread", "Home Depot"])

    assert employers.lookup("DAVES KILLER BREAD INC") == EmployerLookup(match_type="exact", matched_name="Dave's Killer Bread")
    assert employers.lookup("The Home Depot, Inc.").matched_name == "Home Depot"
    assert employers.lookup("Lowe's") == EmployerLookup()
    assert employers.lookup(None) == EmployerLookup()


def test_names_that_normalize_to_nothing_are_skipped() -> None:
    employers = FairChanceEmployers(["The Company", "Acme"])
    assert len(employers) == 1
    assert normalized_key("The Company") == ""


@pytest.mark.parametrize(
    "payload",
    [
        {"employers": [{"name": "Acme Corp"}, {"name": "Beta LLC"}, {"nope": 1}]},
        [{"name": "Acme Corp"}, {"name": "Beta LLC"}],
        ["Acme Corp", "Beta LLC"],
    ],
)
def test_from_file_accepts_known_shapes(tmp_path: Path, payload: object) -> None:
    path = tmp_path / "employers.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    employers = FairChanceEmployers.from_file(str(path))

    assert len(employers) == 2
    assert employers.lookup("acme").match_type == "exact"


def test_missing_file_yields_empty_index(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        employers = FairChanceEmployers.from_file(str(tmp_path / "missing.json"))

    assert len(employers) == 0
    assert "fair-chance employer list missing" in caplog.text
    assert len(FairChanceEmployers.from_file(None)) == 0
