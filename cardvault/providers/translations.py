"""
Card name translation table.

Loaded lazily from a JSON list of records:

    [{"name_en": "Lightning Bolt", "name_localized": "Foudre",
      "language": "fr", "type": "Éphémère"}, ...]

A missing file is not an error: the table is simply empty and cards keep
their provider names.
"""

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from threading import Lock

from cardvault.models.card import CanonicalCard, normalize_language

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TranslationRecord:
    name_en: str
    name_localized: str
    language: str
    type_line: str | None = None


def _key(name: str) -> str:
    return name.strip().lower()


class TranslationTable:
    """
    English <-> localized card names.

    Args:
        records: In-memory records (tests, or a preloaded table)
        path: JSON file read on first use when `records` is not given
    """

    def __init__(
        self,
        records: list[TranslationRecord] | None = None,
        path: Path | None = None,
    ) -> None:
        self._path = path
        self._records = records
        self._lock = Lock()
        # language -> normalized name -> first record seen
        self._by_english: dict[str, dict[str, TranslationRecord]] = {}
        self._by_localized: dict[str, dict[str, TranslationRecord]] = {}
        self._loaded = False

    def _load(self) -> None:
        with self._lock:
            if self._loaded:
                return
            records = self._records if self._records is not None else self._read_file()
            for record in records:
                language = normalize_language(record.language) or ""
                self._by_english.setdefault(language, {}).setdefault(_key(record.name_en), record)
                self._by_localized.setdefault(language, {}).setdefault(
                    _key(record.name_localized), record
                )
            self._loaded = True
            logger.debug("Loaded %d translation records", len(records))

    def _read_file(self) -> list[TranslationRecord]:
        if self._path is None:
            return []
        if not self._path.exists():
            logger.warning("Translation table %s not found, names stay untranslated", self._path)
            return []
        with open(self._path, encoding="utf-8") as f:
            raw = json.load(f)
        return [
            TranslationRecord(
                name_en=item["name_en"],
                name_localized=item["name_localized"],
                language=item.get("language", "fr"),
                type_line=item.get("type"),
            )
            for item in raw
            if item.get("name_en") and item.get("name_localized")
        ]

    def __len__(self) -> int:
        self._load()
        return sum(len(index) for index in self._by_english.values())

    def _lookup(self, name: str, target_language: str) -> TranslationRecord | None:
        """Exact match first, then the first partial (substring) match."""
        key = _key(name)
        if not key:
            return None

        if target_language == "en":
            indexes = list(self._by_localized.values())
        else:
            indexes = [self._by_english.get(target_language, {})]

        for index in indexes:
            if key in index:
                return index[key]
        for index in indexes:
            for candidate, record in index.items():
                if key in candidate or candidate in key:
                    return record
        return None

    def translate(self, name: str, target_language: str) -> str | None:
        """
        Translate a card name.

        `target_language` "en" maps a localized name back to English; any
        other language maps an English name to that language.

        Returns:
            Translated name, or None when the table has no match
        """
        self._load()
        language = normalize_language(target_language)
        if not language:
            return None
        record = self._lookup(name, language)
        if record is None:
            return None
        return record.name_en if language == "en" else record.name_localized

    def enrich(self, card: CanonicalCard, language: str) -> CanonicalCard:
        """
        Localized copy of `card`, or `card` unchanged when no exact match exists.

        Identifiers, set and number are kept; the English name moves to
        `oracle_name`.
        """
        self._load()
        lang = normalize_language(language)
        if not lang or lang == "en":
            return card
        record = self._by_english.get(lang, {}).get(_key(card.oracle_name or card.name))
        if record is None:
            return card
        return replace(
            card,
            name=record.name_localized,
            type_line=record.type_line or card.type_line,
            oracle_name=card.oracle_name or card.name,
            language=lang,
        )
