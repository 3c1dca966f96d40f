"""
Card resolution service.

Turns an untrusted ParsedRow into a CanonicalCard by trying identification
strategies from most to least precise, stopping at the first match.

INVARIANTS:
1. Strategies run in fixed order; a row with a provider id never reaches
   strategy 2
2. Every provider call is queued and memoized; "not found" is cached,
   errors are not
3. A failing strategy (UpstreamError / TransportError) falls through to the
   next one, it never aborts resolution
4. No match is None, not an exception
"""

import logging
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Protocol, TypeVar

from cardvault.models.card import FACE_SEPARATOR, CanonicalCard, ParsedRow, normalize_language
from cardvault.models.failure import TransportError, UpstreamError
from cardvault.services.lru_cache import MISSING, LRUCache
from cardvault.services.request_queue import Priority

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CardLookup(Protocol):
    """Primary provider (Scryfall)."""

    async def card_by_id(self, card_id: str, priority: Priority = ...) -> CanonicalCard | None: ...

    async def card_by_set_number(
        self, set_code: str, collector_number: str, priority: Priority = ...
    ) -> CanonicalCard | None: ...

    async def search_name_number(
        self,
        name: str,
        collector_number: str,
        set_code: str | None = ...,
        priority: Priority = ...,
    ) -> CanonicalCard | None: ...


class LegacyLookup(Protocol):
    """Secondary provider (magicthegathering.io)."""

    async def by_name_number(
        self,
        name: str,
        collector_number: str,
        set_code: str | None = ...,
        priority: Priority = ...,
    ) -> list[CanonicalCard]: ...

    async def by_multiverse_id(
        self, multiverse_id: int, language: str | None = ..., priority: Priority = ...
    ) -> list[CanonicalCard]: ...

    async def by_name(self, name: str, priority: Priority = ...) -> list[CanonicalCard]: ...


class Localizer(Protocol):
    """Translation table used when the provider has no foreign name."""

    def translate(self, name: str, target_language: str) -> str | None: ...

    def enrich(self, card: CanonicalCard, language: str) -> CanonicalCard: ...


StrategyRun = Callable[[ParsedRow, str | None, Priority], Awaitable[CanonicalCard | None]]


@dataclass(frozen=True, slots=True)
class Strategy:
    """One identification method."""

    name: str
    applies: Callable[[ParsedRow], bool]
    run: StrategyRun


def _norm(value: str | None) -> str:
    return (value or "").strip().casefold()


def _set_of(row: ParsedRow) -> str | None:
    return row.set_code or row.set_name


def pick_front_face(cards: Sequence[CanonicalCard], name: str) -> CanonicalCard | None:
    """
    Best match for `name` among search results.

    For "Front // Back" names, or when the results are faces of a
    double-faced card, the face carrying a mana cost is the front. Otherwise
    an exact name match with an image is preferred.
    """
    if not cards:
        return None

    if FACE_SEPARATOR in name or any(c.is_double_faced for c in cards):
        front_name = _norm(name.split(FACE_SEPARATOR)[0])
        with_cost = [c for c in cards if c.mana_cost]
        named = [c for c in with_cost if _norm(c.name.split(FACE_SEPARATOR)[0]) == front_name]
        if named or with_cost:
            return (named or with_cost)[0]

    exact = [c for c in cards if _norm(c.name) == _norm(name)]
    with_image = [c for c in exact if c.image_url]
    return (with_image or exact or list(cards))[0]


def find_back_face(cards: Sequence[CanonicalCard], front: CanonicalCard) -> CanonicalCard | None:
    """
    Back face of `front` among name-search results.

    Candidates have no mana cost and a double-faced layout or " // " name.
    A candidate whose multiverse id is adjacent to the front's wins.
    """
    candidates = [
        c
        for c in cards
        if not c.mana_cost and c.is_double_faced and _norm(c.name) != _norm(front.name)
    ]
    if not candidates:
        return None

    if front.multiverse_id is not None:
        adjacent = {front.multiverse_id - 1, front.multiverse_id + 1}
        for candidate in candidates:
            if candidate.multiverse_id in adjacent:
                return candidate

    complete = [c for c in candidates if c.image_url]
    return (complete or candidates)[0]


class CardResolver:
    """
    Resolves parsed rows against the card providers.

    Args:
        primary: Scryfall client
        legacy: magicthegathering.io client
        cache: Shared memoization cache
        localizer: Optional translation table for language enrichment
    """

    def __init__(
        self,
        primary: CardLookup,
        legacy: LegacyLookup,
        cache: LRUCache[Hashable, Any],
        localizer: Localizer | None = None,
    ) -> None:
        self._primary = primary
        self._legacy = legacy
        self._cache = cache
        self._localizer = localizer
        self.strategies: tuple[Strategy, ...] = (
            Strategy("provider_id", lambda r: bool(r.provider_id), self._by_provider_id),
            Strategy(
                "set_number",
                lambda r: bool(r.collector_number and _set_of(r)),
                self._by_set_number,
            ),
            Strategy(
                "name_number_search",
                lambda r: bool(r.name.strip() and r.collector_number),
                self._by_name_number_search,
            ),
            Strategy(
                "legacy_name_number",
                lambda r: bool(r.name.strip() and r.collector_number),
                self._by_legacy_name_number,
            ),
            Strategy("multiverse_id", lambda r: r.multiverse_id is not None, self._by_multiverse_id),
            Strategy("name", lambda r: bool(r.name.strip()), self._by_name),
        )

    async def resolve(
        self,
        row: ParsedRow,
        prefer_language: str | None = None,
        *,
        priority: Priority = Priority.NORMAL,
    ) -> CanonicalCard | None:
        """
        Resolve one row.

        Args:
            row: Parsed input row
            prefer_language: Language for localized name/type/text ("fr", "French")
            priority: Queue priority for provider calls

        Returns:
            The resolved card, or None when no strategy matched
        """
        language = normalize_language(prefer_language)
        if language == "en":
            language = None

        for strategy in self.strategies:
            if not strategy.applies(row):
                continue
            try:
                card = await strategy.run(row, language, priority)
            except (UpstreamError, TransportError) as e:
                logger.warning("Strategy %s failed for %r: %s", strategy.name, row.name, e.detail)
                continue
            if card is None:
                continue

            logger.debug("Resolved %r via %s", row.name, strategy.name)
            card = await self._attach_back_face(row, card, language, priority)
            return self._localize(card, language)

        logger.info("No match for %r", row.name)
        return None

    # =========================================================================
    # MEMOIZATION
    # =========================================================================

    async def _memoized(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        cached = self._cache.get(key, MISSING)
        if cached is not MISSING:
            result: T = cached
            return result
        value = await fetch()
        self._cache.set(key, value)
        return value

    # =========================================================================
    # STRATEGIES
    # =========================================================================

    async def _by_provider_id(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        card_id = (row.provider_id or "").strip().lower()
        return await self._memoized(
            ("provider_id", card_id, language),
            lambda: self._primary.card_by_id(card_id, priority),
        )

    async def _by_set_number(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        set_code = (_set_of(row) or "").strip().lower()
        number = (row.collector_number or "").strip()
        return await self._memoized(
            ("set_number", set_code, number, language),
            lambda: self._primary.card_by_set_number(set_code, number, priority),
        )

    async def _by_name_number_search(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        set_code = (_set_of(row) or "").strip().lower() or None
        number = (row.collector_number or "").strip()
        return await self._memoized(
            ("name_number_search", _norm(row.name), number, set_code, language),
            lambda: self._primary.search_name_number(row.name.strip(), number, set_code, priority),
        )

    async def _by_legacy_name_number(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        set_code = (_set_of(row) or "").strip().lower() or None
        number = (row.collector_number or "").strip()

        async def fetch() -> CanonicalCard | None:
            cards = await self._legacy.by_name_number(row.name.strip(), number, set_code, priority)
            return pick_front_face(cards, row.name)

        return await self._memoized(
            ("legacy_name_number", _norm(row.name), number, set_code, language), fetch
        )

    async def _by_multiverse_id(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        if row.multiverse_id is None:
            return None
        return await self._multiverse_with_fallback(row.multiverse_id, language, priority)

    async def _by_name(
        self, row: ParsedRow, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        card = pick_front_face(await self._name_search(row.name, language, priority), row.name)

        if card is None and self._localizer is not None:
            # Rows may carry a localized name the providers do not index
            english = self._localizer.translate(row.name, "en")
            if english and _norm(english) != _norm(row.name):
                cards = await self._name_search(english, language, priority)
                card = pick_front_face(cards, english)

        if card is not None and not card.image_url and card.multiverse_id is not None:
            with_image = await self._multiverse_with_fallback(
                card.multiverse_id, language, priority
            )
            if with_image is not None and with_image.image_url:
                card = replace(card, image_url=with_image.image_url)
        return card

    # =========================================================================
    # SHARED LOOKUPS
    # =========================================================================

    async def _name_search(
        self, name: str, language: str | None, priority: Priority
    ) -> tuple[CanonicalCard, ...]:
        async def fetch() -> tuple[CanonicalCard, ...]:
            return tuple(await self._legacy.by_name(name.strip(), priority))

        return await self._memoized(("name", _norm(name), language), fetch)

    async def _multiverse_lookup(
        self, multiverse_id: int, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        async def fetch() -> CanonicalCard | None:
            cards = await self._legacy.by_multiverse_id(multiverse_id, language, priority)
            return cards[0] if cards else None

        return await self._memoized(("multiverse_id", multiverse_id, language), fetch)

    async def _multiverse_with_fallback(
        self, multiverse_id: int, language: str | None, priority: Priority
    ) -> CanonicalCard | None:
        """Preferred-language printing, or the neutral one when it has no image."""
        card = await self._multiverse_lookup(multiverse_id, language, priority)
        if language is None:
            return card
        if card is not None and self._localize(card, language).image_url:
            return card
        neutral = await self._multiverse_lookup(multiverse_id, None, priority)
        return neutral if neutral is not None else card

    # =========================================================================
    # DOUBLE-FACED CARDS AND LOCALIZATION
    # =========================================================================

    async def _attach_back_face(
        self, row: ParsedRow, front: CanonicalCard, language: str | None, priority: Priority
    ) -> CanonicalCard:
        if front.back_face is not None:
            return front
        if not (front.is_double_faced or row.is_double_faced_name):
            return front

        search_name = row.name if row.is_double_faced_name else (front.oracle_name or front.name)
        try:
            back = find_back_face(await self._name_search(search_name, language, priority), front)
            if back is not None and not back.image_url and back.multiverse_id is not None:
                with_image = await self._multiverse_with_fallback(
                    back.multiverse_id, language, priority
                )
                if with_image is not None:
                    back = with_image
        except (UpstreamError, TransportError) as e:
            logger.warning("Back face lookup failed for %r: %s", row.name, e.detail)
            return front

        if back is None:
            logger.debug("No back face found for %r", row.name)
            return front
        return replace(front, back_face=self._localize(back, language))

    def _localize(self, card: CanonicalCard, language: str | None) -> CanonicalCard:
        if language is None or card.language == language:
            return card

        foreign = card.foreign_name(language)
        if foreign is not None:
            return replace(
                card,
                name=foreign.name,
                type_line=foreign.type_line or card.type_line,
                oracle_text=foreign.oracle_text or card.oracle_text,
                image_url=foreign.image_url or card.image_url,
                oracle_name=card.oracle_name or card.name,
                language=language,
            )
        if self._localizer is not None:
            return self._localizer.enrich(card, language)
        return card
