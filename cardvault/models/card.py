"""
Card models.

ParsedRow is UNTRUSTED input from an uploaded card list.
CanonicalCard is provider-backed data built by the resolver.

INVARIANTS:
- Both models are frozen (immutable after construction)
- A CanonicalCard is rebuilt, never patched, when re-resolution is needed
"""

from dataclasses import asdict, dataclass, field
from typing import Any

# Separator between faces in double-faced card names ("Delver of Secrets // Insectile Aberration")
FACE_SEPARATOR = " // "

# Layouts whose second face is a separate card image
DOUBLE_FACED_LAYOUTS = frozenset(
    {"transform", "modal_dfc", "double_faced_token", "reversible_card", "meld"}
)

IdentityKey = tuple[str, str, str]


def identity_key(name: str, set_code: str | None, collector_number: str | None) -> IdentityKey:
    """Normalized (name, set_code, collector_number) used to match rows to entries."""
    return (
        name.strip().casefold(),
        (set_code or "").strip().lower(),
        (collector_number or "").strip(),
    )


@dataclass(frozen=True, slots=True)
class ParsedRow:
    """
    One line of an uploaded card list.

    Attributes:
        name: Card name as typed by the user (may be localized)
        quantity: Copies owned, None when the column is missing
        set_code: Set code (e.g. "m21"), falls back to set name
        collector_number: Collector number within the set
        multiverse_id: Gatherer multiverse id
        provider_id: Scryfall card id
    """

    name: str
    quantity: int | None = None
    set_code: str | None = None
    set_name: str | None = None
    collector_number: str | None = None
    rarity: str | None = None
    condition: str | None = None
    language: str | None = None
    multiverse_id: int | None = None
    provider_id: str | None = None

    @property
    def identity_key(self) -> IdentityKey:
        return identity_key(self.name, self.set_code or self.set_name, self.collector_number)

    @property
    def effective_quantity(self) -> int:
        return self.quantity if self.quantity is not None else 1

    @property
    def is_double_faced_name(self) -> bool:
        return FACE_SEPARATOR in self.name

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ForeignName:
    """Localized printing data reported by a provider for one language."""

    language: str
    name: str
    type_line: str | None = None
    oracle_text: str | None = None
    image_url: str | None = None
    multiverse_id: int | None = None


@dataclass(frozen=True, slots=True)
class CanonicalCard:
    """
    Provider-backed card.

    Attributes:
        name: Display name (localized when a preferred language was found)
        oracle_name: English name, kept when `name` is localized
        language: Language of the localized fields, None for provider default
        provider_id: Scryfall id, kept through localization for later lookups
        back_face: Second face of double-faced cards
        foreign_names: Localized variants reported by the provider
    """

    name: str
    set_code: str | None = None
    collector_number: str | None = None
    mana_cost: str | None = None
    colors: tuple[str, ...] = ()
    type_line: str | None = None
    oracle_text: str | None = None
    image_url: str | None = None
    multiverse_id: int | None = None
    provider_id: str | None = None
    layout: str = "normal"
    rarity: str | None = None
    set_name: str | None = None
    oracle_name: str | None = None
    language: str | None = None
    back_face: "CanonicalCard | None" = None
    foreign_names: tuple[ForeignName, ...] = field(default=())

    @property
    def is_double_faced(self) -> bool:
        return self.layout in DOUBLE_FACED_LAYOUTS or FACE_SEPARATOR in self.name

    def foreign_name(self, language: str) -> ForeignName | None:
        """Provider-supplied localization for a language, matched loosely ("fr" ~ "French")."""
        wanted = normalize_language(language)
        for foreign in self.foreign_names:
            if normalize_language(foreign.language) == wanted:
                return foreign
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation for storage."""
        data = asdict(self)
        data["colors"] = list(self.colors)
        data["foreign_names"] = [asdict(f) for f in self.foreign_names]
        data["back_face"] = self.back_face.to_dict() if self.back_face else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanonicalCard":
        back = data.get("back_face")
        return cls(
            name=data["name"],
            set_code=data.get("set_code"),
            collector_number=data.get("collector_number"),
            mana_cost=data.get("mana_cost"),
            colors=tuple(data.get("colors") or ()),
            type_line=data.get("type_line"),
            oracle_text=data.get("oracle_text"),
            image_url=data.get("image_url"),
            multiverse_id=data.get("multiverse_id"),
            provider_id=data.get("provider_id"),
            layout=data.get("layout") or "normal",
            rarity=data.get("rarity"),
            set_name=data.get("set_name"),
            oracle_name=data.get("oracle_name"),
            language=data.get("language"),
            back_face=cls.from_dict(back) if back else None,
            foreign_names=tuple(ForeignName(**f) for f in data.get("foreign_names") or ()),
        )


# Aliases seen in exports and provider payloads, mapped to ISO 639-1 codes
_LANGUAGE_ALIASES: dict[str, str] = {
    "english": "en",
    "french": "fr",
    "german": "de",
    "italian": "it",
    "spanish": "es",
    "portuguese": "pt",
    "portuguese (brazil)": "pt",
    "japanese": "ja",
    "korean": "ko",
    "russian": "ru",
    "chinese simplified": "zhs",
    "chinese traditional": "zht",
}


def normalize_language(language: str | None) -> str | None:
    """Map "French", "fr", "FR" to "fr". Unknown values are lower-cased."""
    if not language:
        return None
    lowered = language.strip().lower()
    return _LANGUAGE_ALIASES.get(lowered, lowered)
