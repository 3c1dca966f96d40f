"""
Scryfall API client.

Lookups by Scryfall id, by set + collector number, and by search query.
Every call goes through the shared RequestQueue and RetryingTransport.

API docs: https://scryfall.com/docs/api
"""

import logging
from typing import Any

from cardvault.models.card import CanonicalCard
from cardvault.providers.http import ProviderHttp
from cardvault.services.request_queue import Priority

logger = logging.getLogger(__name__)

SCRYFALL_API = "https://api.scryfall.com"

# Preferred image sizes, best first
_IMAGE_KEYS = ("normal", "large", "png", "border_crop")


def _image_url(image_uris: dict[str, str] | None) -> str | None:
    if not image_uris:
        return None
    for key in _IMAGE_KEYS:
        if image_uris.get(key):
            return image_uris[key]
    return None


def _multiverse_id(data: dict[str, Any], index: int) -> int | None:
    ids = data.get("multiverse_ids") or []
    return int(ids[index]) if len(ids) > index else None


def card_from_scryfall(data: dict[str, Any]) -> CanonicalCard:
    """
    Convert a Scryfall card object.

    Double-faced cards carry their faces in `card_faces`, each with its own
    image; the second face becomes `back_face`. Split and adventure cards
    also have `card_faces` but share one image, so they stay single cards.
    """
    faces: list[dict[str, Any]] = data.get("card_faces") or []
    front = faces[0] if faces else data
    image = _image_url(front.get("image_uris")) or _image_url(data.get("image_uris"))
    layout = data.get("layout") or "normal"

    back_face = None
    if len(faces) > 1 and faces[1].get("image_uris"):
        back = faces[1]
        back_face = CanonicalCard(
            name=back.get("name", ""),
            set_code=data.get("set"),
            collector_number=data.get("collector_number"),
            mana_cost=back.get("mana_cost") or None,
            colors=tuple(back.get("colors") or ()),
            type_line=back.get("type_line"),
            oracle_text=back.get("oracle_text"),
            image_url=_image_url(back.get("image_uris")),
            multiverse_id=_multiverse_id(data, 1),
            provider_id=data.get("id"),
            layout=layout,
            rarity=data.get("rarity"),
            set_name=data.get("set_name"),
        )

    return CanonicalCard(
        name=data["name"],
        set_code=data.get("set"),
        collector_number=data.get("collector_number"),
        mana_cost=front.get("mana_cost") or data.get("mana_cost") or None,
        colors=tuple(data.get("colors") or front.get("colors") or ()),
        type_line=data.get("type_line") or front.get("type_line"),
        oracle_text=front.get("oracle_text") or data.get("oracle_text"),
        image_url=image,
        multiverse_id=_multiverse_id(data, 0),
        provider_id=data.get("id"),
        layout=layout,
        rarity=data.get("rarity"),
        set_name=data.get("set_name"),
        back_face=back_face,
    )


def build_search_query(name: str, collector_number: str, set_code: str | None = None) -> str:
    """Exact-name structured query, e.g. `!"Lightning Bolt" set:m21 number:161`."""
    query = f'!"{name}"'
    if set_code:
        query += f" set:{set_code.lower()}"
    query += f" number:{collector_number}"
    return query


class ScryfallClient:
    """Queued, retrying access to the Scryfall REST API."""

    def __init__(self, http: ProviderHttp, base_url: str = SCRYFALL_API) -> None:
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def card_by_id(
        self, card_id: str, priority: Priority = Priority.NORMAL
    ) -> CanonicalCard | None:
        """Card for a Scryfall id, or None if Scryfall does not know it."""
        data = await self._http.get_json(f"{self.base_url}/cards/{card_id}", priority=priority)
        return card_from_scryfall(data) if data else None

    async def card_by_set_number(
        self, set_code: str, collector_number: str, priority: Priority = Priority.NORMAL
    ) -> CanonicalCard | None:
        """Exact printing via /cards/{set}/{number}."""
        url = f"{self.base_url}/cards/{set_code.lower()}/{collector_number}"
        data = await self._http.get_json(url, priority=priority)
        return card_from_scryfall(data) if data else None

    async def search(
        self, query: str, priority: Priority = Priority.NORMAL
    ) -> list[CanonicalCard]:
        """First page of a full-text search. No results is an empty list."""
        data = await self._http.get_json(
            f"{self.base_url}/cards/search", params={"q": query}, priority=priority
        )
        if not data:
            return []
        return [card_from_scryfall(card) for card in data.get("data", [])]

    async def search_name_number(
        self,
        name: str,
        collector_number: str,
        set_code: str | None = None,
        priority: Priority = Priority.NORMAL,
    ) -> CanonicalCard | None:
        """First printing matching exact name and collector number (and set)."""
        cards = await self.search(build_search_query(name, collector_number, set_code), priority)
        return cards[0] if cards else None
