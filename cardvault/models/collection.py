from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from cardvault.models.card import CanonicalCard, IdentityKey, ParsedRow


@dataclass(frozen=True, slots=True)
class CollectionEntry:
    """
    A persisted card in a user's collection.

    Identity for dedup and update diffing is the row's identity key, not `id`.
    """

    id: str
    owner_id: str
    row: ParsedRow
    resolved: CanonicalCard | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def identity_key(self) -> IdentityKey:
        return self.row.identity_key

    @property
    def name(self) -> str:
        return self.row.name

    @property
    def quantity(self) -> int:
        return self.row.effective_quantity

    def field_value(self, field_name: str) -> object:
        """Value of a diffable field; `provider_id` reads the resolved card."""
        if field_name == "provider_id":
            return self.resolved.provider_id if self.resolved else None
        if field_name == "quantity":
            return self.quantity
        return getattr(self.row, field_name)

    def with_row(self, row: ParsedRow, resolved: CanonicalCard | None) -> "CollectionEntry":
        """Copy of this entry carrying a new row and resolution, same id."""
        return replace(self, row=row, resolved=resolved)


@dataclass(frozen=True, slots=True)
class NewEntry:
    """An entry waiting for the store to assign its id."""

    owner_id: str
    row: ParsedRow
    resolved: CanonicalCard | None = None

    @property
    def identity_key(self) -> IdentityKey:
        return self.row.identity_key

    def field_value(self, field_name: str) -> object:
        if field_name == "provider_id":
            return self.resolved.provider_id if self.resolved else None
        if field_name == "quantity":
            return self.row.effective_quantity
        return getattr(self.row, field_name)


def entries_differ(
    existing: CollectionEntry, candidate: NewEntry, fields: list[str] | tuple[str, ...]
) -> bool:
    """Field-by-field comparison over the configured significant fields."""
    return any(existing.field_value(f) != candidate.field_value(f) for f in fields)
