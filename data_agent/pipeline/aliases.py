"""
Alias Table

Single source of truth for the mapping between everyday domain terms and the
abbreviated identifiers the database actually uses. The prompt builder turns
it into "use X not Y" rules, the sanitizer rewrites generated SQL with it,
and the answer composer uses the inverse to phrase results.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

import yaml

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

DEFAULT_ALIASES: dict[str, str] = {
    # tables
    "album": "albm",
    "albums": "albm",
    "track": "trk",
    "tracks": "trk",
    "employee": "employe",
    "employees": "employe",
    "invoice_line": "inv_line",
    "invoice_lines": "inv_line",
    "artists": "artist",
    "genres": "genre",
    "customers": "customer",
    "invoices": "invoice",
    # albm
    "title": "ttle",
    "year": "col1",
    "release_year": "col1",
    "artist_id": "a_id",
    # artist
    "name": "NM",
    "country": "ctry",
    # trk
    "price": "cost",
    "composer": "written_by",
    "milliseconds": "length_ms",
    "bytes": "size_bytes",
    "album_id": "AlbmID",
    "genre_id": "GenreID",
    "media_type_id": "MediaTypeIdentifier",
    # customer, invoice, inv_line
    "customer_id": "cust_id",
    "first_name": "F_NAME",
    "last_name": "L_NAME",
    "invoice_date": "date_of_invoice",
    "quantity": "qty",
}


class AliasTable(Mapping[str, str]):
    """
    Immutable, case-insensitive mapping of canonical term -> schema identifier.

    Keys are unique ignoring case, and no identifier may itself be a key, so
    applying the table twice never rewrites anything the first pass produced.
    """

    def __init__(self, aliases: Mapping[str, str]):
        forward: dict[str, str] = {}
        originals: dict[str, str] = {}
        for term, target in aliases.items():
            term = str(term).strip()
            target = str(target).strip()
            if not _IDENTIFIER.match(term):
                raise ValueError(f"Alias term is not a plain identifier: {term!r}")
            if not _IDENTIFIER.match(target):
                raise ValueError(f"Alias target is not a plain identifier: {target!r}")
            key = term.lower()
            if key in forward:
                raise ValueError(f"Duplicate alias term: {term!r}")
            forward[key] = target
            originals[key] = term

        chained = sorted(t for t in forward.values() if t.lower() in forward)
        if chained:
            raise ValueError(f"Alias targets must not also be terms: {', '.join(chained)}")

        self._forward = MappingProxyType(forward)
        self._terms = MappingProxyType(originals)
        self._pattern = _compile(forward.keys())

    @classmethod
    def default(cls) -> AliasTable:
        return cls(DEFAULT_ALIASES)

    @classmethod
    def from_yaml(cls, path: str | Path) -> AliasTable:
        """
        Load aliases from YAML, either a flat mapping or under an ``aliases`` key.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the document is not a mapping of strings
        """
        path = Path(path)
        document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if isinstance(document, dict) and "aliases" in document:
            document = document["aliases"]
        if not isinstance(document, dict):
            raise ValueError(f"Alias file {path} must contain a mapping")
        table = cls(document)
        logger.info(f"Loaded {len(table)} aliases from {path}")
        return table

    def __getitem__(self, term: str) -> str:
        return self._forward[term.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._terms.values())

    def __len__(self) -> int:
        return len(self._forward)

    def __contains__(self, term: object) -> bool:
        return isinstance(term, str) and term.lower() in self._forward

    def __repr__(self) -> str:
        return f"<AliasTable {len(self)} aliases>"

    @property
    def pattern(self) -> re.Pattern[str] | None:
        """Whole-word, case-insensitive matcher over every term (longest first)."""
        return self._pattern

    def rules(self) -> list[tuple[str, str]]:
        """(term, target) pairs in a stable order for prompt rendering."""
        return sorted(
            ((self._terms[key], target) for key, target in self._forward.items()),
            key=lambda pair: (pair[1].lower(), pair[0].lower()),
        )

    def inverse(self) -> dict[str, str]:
        """Identifier -> first registered everyday term."""
        inverse: dict[str, str] = {}
        for key, target in self._forward.items():
            inverse.setdefault(target, self._terms[key].replace("_", " "))
        return inverse

    def expand_terms(self, words: set[str]) -> set[str]:
        """Add the identifier for every word that is an alias term."""
        expanded = set(words)
        for word in words:
            target = self._forward.get(word.lower())
            if target:
                expanded.add(target.lower())
        return expanded


def _compile(terms) -> re.Pattern[str] | None:
    ordered = sorted(terms, key=lambda term: (-len(term), term))
    if not ordered:
        return None
    alternation = "|".join(re.escape(term) for term in ordered)
    return re.compile(rf"(?<![\w$])(?:{alternation})(?![\w$])", re.IGNORECASE)


def load_alias_table(path: str | Path | None = None) -> AliasTable:
    """Alias table from ``path`` when given, else the built-in defaults."""
    if path is None:
        return AliasTable.default()
    return AliasTable.from_yaml(path)
