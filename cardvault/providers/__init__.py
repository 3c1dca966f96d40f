"""Card data providers: Scryfall, magicthegathering.io and the translation table."""

from cardvault.providers.http import ProviderHttp
from cardvault.providers.mtgio import MtgApiClient, card_from_mtgio
from cardvault.providers.scryfall import ScryfallClient, build_search_query, card_from_scryfall
from cardvault.providers.translations import TranslationRecord, TranslationTable

__all__ = [
    "MtgApiClient",
    "ProviderHttp",
    "ScryfallClient",
    "TranslationRecord",
    "TranslationTable",
    "build_search_query",
    "card_from_mtgio",
    "card_from_scryfall",
]
