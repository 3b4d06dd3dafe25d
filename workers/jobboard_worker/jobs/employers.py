from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import re
from typing import Any

logger = logging.getLogger(__name__)

LEGAL_SUFFIXES = (
    "inc", "incorporated", "corp", "corporation", "co", "company", "companies",
    "llc", "llp", "ltd", "limited", "plc", "gmbh", "ag", "sa", "nv", "bv",
    "group", "holdings", "holding", "enterprises", "enterprise",
    "international", "intl", "global", "worldwide",
    "usa", "us", "america", "americas",
    "services", "service", "solutions", "solution",
    "technologies", "technology", "tech",
    "industries", "industry",
    "partners", "partner", "partnership",
    "associates", "associate",
    "brands", "brand",
    "stores", "store", "retail",
    "restaurants", "restaurant",
    "foods", "food", "beverages", "beverage",
    "the",
)

_SUFFIX_PATTERN = re.compile(r"\b(" + "|".join(LEGAL_SUFFIXES) + r")\b", re.IGNORECASE)
_APOSTROPHES = re.compile(r"['‘’`]")
_DASHES = re.compile(r"[-–—]")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_company_name(name: str | None) -> str:
    """Lower-case a company name and strip punctuation and legal or generic suffixes."""
    if not name:
        return ""
    text = _APOSTROPHES.sub("", name.lower())
    text = text.replace("&", " and ")
    text = _DASHES.sub(" ", text)
    text = text.replace(".", "").replace(",", "")
    text = _PUNCTUATION.sub(" ", text)
    text = _SUFFIX_PATTERN.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalized_key(name: str | None) -> str:
    return normalize_company_name(name).replace(" ", "")


@dataclass(frozen=True, slots=True)
class EmployerLookup:
    match_type: str = "none"
    matched_name: str | None = None
    similarity: float | None = None


class FairChanceEmployers:
    """In-memory index of employers known to hire people with records."""

    def __init__(self, names: list[str] | None = None) -> None:
        self._by_key: dict[str, str] = {}
        for name in names or []:
            key = normalized_key(name)
            if key:
                self._by_key.setdefault(key, name)

    def __len__(self) -> int:
        return len(self._by_key)

    def lookup(self, company: str | None) -> EmployerLookup:
        key = normalized_key(company)
        if not key:
            return EmployerLookup()
        matched = self._by_key.get(key)
        if matched is None:
            return EmployerLookup()
        return EmployerLookup(match_type="exact", matched_name=matched)

    @classmethod
    def from_file(cls, path: str | None) -> FairChanceEmployers:
        """Load a JSON employer list.

        Accepts ``{"employers": [{"name": ...}]}`` as written by the scraper,
        a bare list of such objects, or a bare list of names. A missing path
        yields an empty index.
        """
        if not path:
            return cls()
        file_path = Path(path)
        if not file_path.exists():
            logger.warning("fair-chance employer list missing path=%s", path)
            return cls()

        payload: Any = json.loads(file_path.read_text(encoding="utf-8"))
        entries = payload.get("employers", []) if isinstance(payload, dict) else payload
        names: list[str] = []
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, str):
                names.append(entry)
            elif isinstance(entry, dict) and isinstance(entry.get("name"), str):
                names.append(entry["name"])
        employers = cls(names)
        logger.info("fair-chance employers loaded count=%s path=%s", len(employers), path)
        return employers
