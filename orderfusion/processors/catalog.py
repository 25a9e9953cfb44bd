"""
Read-only reference catalog.

Loaded once from JSON, either a flat list of entries or the nested order
export ("demandes" -> "items" with "Codif cat", "Modèle", "coloris",
"Taille", "PV" keys), then queried by reference and by model name.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein
from rapidfuzz.utils import default_process

from orderfusion.core.exceptions import CatalogError
from orderfusion.models.dto import CatalogEntry
from orderfusion.processors.fuzzy_normalizer import canonical_reference, compact_reference
from orderfusion.utils.io_utils import read_json

logger = logging.getLogger(__name__)

NESTED_FIELD_MAP: Mapping[str, str] = MappingProxyType(
    {
        "Codif cat": "reference",
        "Modèle": "model",
        "coloris": "color",
        "Taille": "size",
        "PV": "price",
    }
)


class ReferenceCatalog:
    """Immutable catalog indexed by canonical and whitespace-free reference."""

    def __init__(self, entries: Iterable[CatalogEntry]) -> None:
        self._entries = tuple(entries)
        index: dict[str, CatalogEntry] = {}
        for entry in self._entries:
            for key in (canonical_reference(entry.reference), compact_reference(entry.reference)):
                if key and key not in index:
                    index[key] = entry
        self._index = MappingProxyType(index)
        self._named = tuple(entry for entry in self._entries if entry.model)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    def find(self, reference: Optional[str]) -> Optional[CatalogEntry]:
        """Exact lookup: as written, canonical form, or ignoring whitespace."""
        if not reference:
            return None
        for key in (reference, canonical_reference(reference), compact_reference(reference)):
            if key and key in self._index:
                return self._index[key]
        return None

    def best_model_match(
        self, name: Optional[str], threshold: float
    ) -> Optional[tuple[CatalogEntry, float]]:
        """
        Closest model name by normalized Levenshtein similarity.

        Returns (entry, similarity) only when similarity is strictly above
        `threshold`, otherwise None.
        """
        if not name or not self._named:
            return None
        match = process.extractOne(
            name,
            [entry.model for entry in self._named],
            scorer=Levenshtein.normalized_similarity,
            processor=default_process,
            score_cutoff=threshold,
        )
        if match is None:
            return None
        _, score, position = match
        if score <= threshold:
            return None
        return self._named[position], float(score)


def _entry_from_nested(item: dict[str, Any]) -> dict[str, Any]:
    return {target: item.get(source) for source, target in NESTED_FIELD_MAP.items()}


def parse_catalog(data: Any, source: str = "<memory>") -> ReferenceCatalog:
    """
    Build a catalog from decoded JSON.

    Raises:
      CatalogError(CATALOG_UNPARSABLE): top level is not a list of objects or
        an entry fails validation.
    """
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise CatalogError("CATALOG_UNPARSABLE", source, "top level must be a list")

    raw_entries: list[dict[str, Any]] = []
    for element in data:
        if not isinstance(element, dict):
            raise CatalogError("CATALOG_UNPARSABLE", source, "catalog elements must be objects")
        if "demandes" in element:
            for demande in element.get("demandes") or []:
                for item in (demande or {}).get("items") or []:
                    raw_entries.append(_entry_from_nested(item))
        elif "Codif cat" in element:
            raw_entries.append(_entry_from_nested(element))
        else:
            raw_entries.append(element)

    entries = []
    for raw in raw_entries:
        if not raw.get("reference"):
            logger.debug(f"Catalog entry without reference skipped: {raw}")
            continue
        try:
            entries.append(CatalogEntry.model_validate(raw))
        except ValidationError as exc:
            raise CatalogError("CATALOG_UNPARSABLE", source, str(exc)) from exc
    return ReferenceCatalog(entries)


def load_catalog(path: str | Path) -> ReferenceCatalog:
    """
    Load a catalog JSON file.

    Raises:
      CatalogError(CATALOG_NOT_FOUND): the file does not exist.
      CatalogError(CATALOG_UNPARSABLE): invalid JSON or unexpected shape.
    """
    path = Path(path)
    if not path.is_file():
        logger.error(f"Catalog not found: {path}", extra={"error_code": "CATALOG_NOT_FOUND"})
        raise CatalogError("CATALOG_NOT_FOUND", str(path))
    try:
        data = read_json(path)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.error(f"Catalog unparsable: {path}", extra={"error_code": "CATALOG_UNPARSABLE"})
        raise CatalogError("CATALOG_UNPARSABLE", str(path), str(exc)) from exc
    catalog = parse_catalog(data, str(path))
    logger.info(f"Catalog loaded: {len(catalog)} reference(s) from {path}")
    return catalog
