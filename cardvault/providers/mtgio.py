"""
magicthegathering.io client (legacy provider).

Used for name + number lookups, multiverse ids and bare name searches,
and as the source of back faces and localized printings (`foreignNames`).

API docs: https://docs.magicthegathering.io
"""

import logging
from typing import Any

from cardvault.models.card import FACE_SEPARATOR, CanonicalCard, ForeignName
from cardvault.providers.http import ProviderHttp
from cardvault.services.request_queue import Priority

logger = logging.getLogger(__name__)

MTGIO_API = "https://api.magicthegathering.io/v1"

PAGE_SIZE = 100

# The API filters foreign printings by English language name
_LANGUAGE_NAMES = {
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "es": "Spanish",
    "pt": "Portuguese (Brazil)",
    "ja": "Japanese",
    "ko": "Korean",
    "ru": "Russian",
    "zhs": "Chinese Simplified",
    "zht": "Chinese Traditional",
}


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def card_from_mtgio(data: dict[str, Any]) -> CanonicalCard:
    """Convert a magicthegathering.io card object."""
    foreign = tuple(
        ForeignName(
            language=f.get("language", ""),
            name=f["name"],
            type_line=f.get("type"),
            oracle_text=f.get("text"),
            image_url=f.get("imageUrl"),
            multiverse_id=_as_int(f.get("multiverseid")),
        )
        for f in data.get("foreignNames") or []
        if f.get("name")
    )
    return CanonicalCard(
        name=data["name"],
        set_code=(data.get("set") or "").lower() or None,
        collector_number=data.get("number"),
        mana_cost=data.get("manaCost") or None,
        colors=tuple(data.get("colors") or ()),
        type_line=data.get("type"),
        oracle_text=data.get("text"),
        image_url=data.get("imageUrl"),
        multiverse_id=_as_int(data.get("multiverseid")),
        layout=data.get("layout") or "normal",
        rarity=(data.get("rarity") or "").lower() or None,
        set_name=data.get("setName"),
        foreign_names=foreign,
    )


def _face_names(name: str) -> list[str]:
    return [part.strip() for part in name.split(FACE_SEPARATOR) if part.strip()]


class MtgApiClient:
    """Queued, retrying access to the magicthegathering.io REST API."""

    def __init__(self, http: ProviderHttp, base_url: str = MTGIO_API) -> None:
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def _cards(
        self, params: dict[str, str], priority: Priority
    ) -> list[dict[str, Any]]:
        data = await self._http.get_json(f"{self.base_url}/cards", params=params, priority=priority)
        if not data:
            return []
        cards: list[dict[str, Any]] = data.get("cards") or []
        return cards

    async def by_name_number(
        self,
        name: str,
        collector_number: str,
        set_code: str | None = None,
        priority: Priority = Priority.NORMAL,
    ) -> list[CanonicalCard]:
        """Printings matching name and collector number (and set)."""
        faces = _face_names(name)
        if not faces:
            return []
        params = {"name": faces[0], "number": collector_number}
        if set_code:
            params["set"] = set_code.upper()
        return [card_from_mtgio(c) for c in await self._cards(params, priority)]

    async def by_multiverse_id(
        self,
        multiverse_id: int,
        language: str | None = None,
        priority: Priority = Priority.NORMAL,
    ) -> list[CanonicalCard]:
        """
        Printings with a multiverse id.

        With `language`, the id is matched against that language's printing.
        """
        params = {"multiverseid": str(multiverse_id)}
        if language and language in _LANGUAGE_NAMES:
            params["language"] = _LANGUAGE_NAMES[language]
        return [card_from_mtgio(c) for c in await self._cards(params, priority)]

    async def by_name(
        self, name: str, priority: Priority = Priority.NORMAL
    ) -> list[CanonicalCard]:
        """
        Name search covering every face of a multi-faced card.

        Faces are OR-ed with `|`. When a face's sibling names (`names`) were
        not part of the query, one follow-up search fetches them so back
        faces are included. Exact face-name matches win over partial ones.
        """
        faces = _face_names(name)
        if not faces:
            return []

        raw = await self._cards({"name": "|".join(faces), "pageSize": str(PAGE_SIZE)}, priority)
        wanted = {face.casefold() for face in faces}
        siblings = {
            sibling
            for card in raw
            if card.get("name", "").casefold() in wanted
            for sibling in card.get("names") or []
            if sibling.casefold() not in wanted
        }
        if siblings:
            faces = faces + sorted(siblings)
            wanted |= {s.casefold() for s in siblings}
            raw = await self._cards(
                {"name": "|".join(faces), "pageSize": str(PAGE_SIZE)}, priority
            )

        exact = [
            c
            for c in raw
            if c.get("name", "").casefold() in wanted or FACE_SEPARATOR in c.get("name", "")
        ]
        return [card_from_mtgio(c) for c in exact or raw]
