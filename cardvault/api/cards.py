"""
Card lookup API endpoint.

Interactive single-card resolution. Runs at HIGH queue priority so a user
waiting on a lookup is served ahead of background imports.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from cardvault.api.dependencies import get_services
from cardvault.bootstrap import Services
from cardvault.models.card import CanonicalCard, ParsedRow
from cardvault.services.request_queue import Priority

router = APIRouter(prefix="/cards", tags=["cards"])


class CardResponse(BaseModel):
    """Resolved card."""

    name: str
    oracle_name: str | None = None
    set_code: str | None = None
    set_name: str | None = None
    collector_number: str | None = None
    mana_cost: str | None = None
    colors: list[str] = Field(default_factory=list)
    type_line: str | None = None
    oracle_text: str | None = None
    image_url: str | None = None
    multiverse_id: int | None = None
    provider_id: str | None = None
    layout: str = "normal"
    rarity: str | None = None
    language: str | None = None
    back_face: "CardResponse | None" = None

    @classmethod
    def from_card(cls, card: CanonicalCard) -> "CardResponse":
        return cls(
            name=card.name,
            oracle_name=card.oracle_name,
            set_code=card.set_code,
            set_name=card.set_name,
            collector_number=card.collector_number,
            mana_cost=card.mana_cost,
            colors=list(card.colors),
            type_line=card.type_line,
            oracle_text=card.oracle_text,
            image_url=card.image_url,
            multiverse_id=card.multiverse_id,
            provider_id=card.provider_id,
            layout=card.layout,
            rarity=card.rarity,
            language=card.language,
            back_face=cls.from_card(card.back_face) if card.back_face else None,
        )


@router.get("/lookup", response_model=CardResponse)
async def lookup_card(
    services: Annotated[Services, Depends(get_services)],
    name: Annotated[str, Query(min_length=1)],
    set_code: str | None = None,
    collector_number: str | None = None,
    multiverse_id: int | None = None,
    provider_id: str | None = None,
    language: str | None = None,
) -> CardResponse:
    """
    Resolve one card.

    Returns 404 if no provider knows the card.
    """
    row = ParsedRow(
        name=name,
        set_code=set_code,
        collector_number=collector_number,
        multiverse_id=multiverse_id,
        provider_id=provider_id,
    )
    card = await services.resolver.resolve(row, language, priority=Priority.HIGH)
    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No card found for '{name}'",
        )
    return CardResponse.from_card(card)
