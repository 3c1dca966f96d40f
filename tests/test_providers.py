"""Tests for the Scryfall and magicthegathering.io clients and the translation table."""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
import respx

from cardvault.models.card import CanonicalCard, ForeignName
from cardvault.models.failure import UpstreamError
from cardvault.providers import (
    MtgApiClient,
    ProviderHttp,
    ScryfallClient,
    TranslationRecord,
    TranslationTable,
    build_search_query,
    card_from_scryfall,
)
from cardvault.services.request_queue import RequestQueue
from cardvault.services.transport import RetryingTransport, RetryPolicy

SCRYFALL = "https://api.scryfall.com"
MTGIO = "https://api.magicthegathering.io/v1"

BOLT = {
    "id": "e3285e6b-3e79-4d7c-bf96-d920f973b80d",
    "name": "Lightning Bolt",
    "set": "m21",
    "set_name": "Core Set 2021",
    "collector_number": "161",
    "mana_cost": "{R}",
    "colors": ["R"],
    "type_line": "Instant",
    "oracle_text": "Lightning Bolt deals 3 damage to any target.",
    "rarity": "uncommon",
    "layout": "normal",
    "multiverse_ids": [485474],
    "image_uris": {"small": "https://img/small.jpg", "normal": "https://img/bolt.jpg"},
}

DELVER = {
    "id": "11bf83bb-c95b-4b4f-9a56-ce7a1816307a",
    "name": "Delver of Secrets // Insectile Aberration",
    "set": "isd",
    "collector_number": "51",
    "layout": "transform",
    "type_line": "Creature — Human Wizard // Creature — Human Insect",
    "multiverse_ids": [226749, 226755],
    "card_faces": [
        {
            "name": "Delver of Secrets",
            "mana_cost": "{U}",
            "type_line": "Creature — Human Wizard",
            "image_uris": {"normal": "https://img/delver-front.jpg"},
        },
        {
            "name": "Insectile Aberration",
            "mana_cost": "",
            "type_line": "Creature — Human Insect",
            "image_uris": {"normal": "https://img/delver-back.jpg"},
        },
    ],
}


class NoSleep:
    async def __call__(self, delay: float) -> None:
        return None


@pytest.fixture
async def http() -> AsyncGenerator[ProviderHttp, None]:
    async with httpx.AsyncClient() as client:
        transport = RetryingTransport(client, RetryPolicy(max_retries=1), sleep=NoSleep())
        yield ProviderHttp(transport, RequestQueue(concurrency=2))


class TestScryfallConversion:
    def test_single_faced_card(self) -> None:
        card = card_from_scryfall(BOLT)

        assert card.name == "Lightning Bolt"
        assert card.image_url == "https://img/bolt.jpg"
        assert card.multiverse_id == 485474
        assert card.provider_id == BOLT["id"]
        assert card.colors == ("R",)
        assert card.back_face is None

    def test_transform_card_gets_back_face(self) -> None:
        card = card_from_scryfall(DELVER)

        assert card.mana_cost == "{U}"
        assert card.image_url == "https://img/delver-front.jpg"
        assert card.back_face is not None
        assert card.back_face.name == "Insectile Aberration"
        assert card.back_face.image_url == "https://img/delver-back.jpg"
        assert card.back_face.multiverse_id == 226755
        assert card.back_face.mana_cost is None

    def test_search_query(self) -> None:
        assert build_search_query("Lightning Bolt", "161", "M21") == (
            '!"Lightning Bolt" set:m21 number:161'
        )
        assert build_search_query("Lightning Bolt", "161") == '!"Lightning Bolt" number:161'


class TestScryfallClient:
    @respx.mock
    async def test_card_by_set_number(self, http: ProviderHttp) -> None:
        respx.get(f"{SCRYFALL}/cards/m21/161").mock(return_value=httpx.Response(200, json=BOLT))

        card = await ScryfallClient(http).card_by_set_number("M21", "161")

        assert card is not None
        assert card.name == "Lightning Bolt"

    @respx.mock
    async def test_not_found_is_none(self, http: ProviderHttp) -> None:
        respx.get(f"{SCRYFALL}/cards/unknown-id").mock(return_value=httpx.Response(404))

        assert await ScryfallClient(http).card_by_id("unknown-id") is None

    @respx.mock
    async def test_search_without_results_is_empty(self, http: ProviderHttp) -> None:
        respx.get(f"{SCRYFALL}/cards/search").mock(return_value=httpx.Response(404))

        assert await ScryfallClient(http).search('!"Nothing"') == []

    @respx.mock
    async def test_search_name_number_sends_structured_query(self, http: ProviderHttp) -> None:
        route = respx.get(
            f"{SCRYFALL}/cards/search", params={"q": '!"Lightning Bolt" set:m21 number:161'}
        ).mock(return_value=httpx.Response(200, json={"data": [BOLT]}))

        card = await ScryfallClient(http).search_name_number("Lightning Bolt", "161", "M21")

        assert route.called
        assert card is not None
        assert card.set_code == "m21"

    @respx.mock
    async def test_server_error_raises_upstream_error(self, http: ProviderHttp) -> None:
        respx.get(f"{SCRYFALL}/cards/abc").mock(return_value=httpx.Response(400))

        with pytest.raises(UpstreamError) as exc_info:
            await ScryfallClient(http).card_by_id("abc")

        assert exc_info.value.status == 400


class TestMtgApiClient:
    @respx.mock
    async def test_by_multiverse_id_with_language(self, http: ProviderHttp) -> None:
        route = respx.get(
            f"{MTGIO}/cards", params={"multiverseid": "485474", "language": "French"}
        ).mock(
            return_value=httpx.Response(
                200,
                json={
                    "cards": [
                        {
                            "name": "Lightning Bolt",
                            "set": "M21",
                            "number": "161",
                            "manaCost": "{R}",
                            "multiverseid": "485474",
                            "rarity": "Uncommon",
                            "foreignNames": [
                                {
                                    "name": "Foudre",
                                    "language": "French",
                                    "type": "Éphémère",
                                    "imageUrl": "https://img/foudre.jpg",
                                    "multiverseid": 485800,
                                }
                            ],
                        }
                    ]
                },
            )
        )

        cards = await MtgApiClient(http).by_multiverse_id(485474, "fr")

        assert route.called
        assert cards[0].multiverse_id == 485474
        assert cards[0].set_code == "m21"
        assert cards[0].rarity == "uncommon"
        foreign = cards[0].foreign_name("fr")
        assert foreign is not None
        assert foreign.name == "Foudre"
        assert foreign.multiverse_id == 485800

    @respx.mock
    async def test_by_name_fetches_sibling_faces(self, http: ProviderHttp) -> None:
        front = {
            "name": "Delver of Secrets",
            "names": ["Delver of Secrets", "Insectile Aberration"],
            "manaCost": "{U}",
            "layout": "transform",
            "multiverseid": 226749,
        }
        back = {
            "name": "Insectile Aberration",
            "names": ["Delver of Secrets", "Insectile Aberration"],
            "layout": "transform",
            "multiverseid": 226755,
        }
        first = respx.get(f"{MTGIO}/cards", params={"name": "Delver of Secrets"}).mock(
            return_value=httpx.Response(200, json={"cards": [front]})
        )
        second = respx.get(
            f"{MTGIO}/cards", params={"name": "Delver of Secrets|Insectile Aberration"}
        ).mock(return_value=httpx.Response(200, json={"cards": [front, back]}))

        cards = await MtgApiClient(http).by_name("Delver of Secrets")

        assert first.called
        assert second.called
        assert [c.name for c in cards] == ["Delver of Secrets", "Insectile Aberration"]

    @respx.mock
    async def test_by_name_prefers_exact_matches(self, http: ProviderHttp) -> None:
        respx.get(f"{MTGIO}/cards").mock(
            return_value=httpx.Response(
                200,
                json={"cards": [{"name": "Bolt of Keranos"}, {"name": "Lightning Bolt"}]},
            )
        )

        cards = await MtgApiClient(http).by_name("Lightning Bolt")

        assert [c.name for c in cards] == ["Lightning Bolt"]


class TestTranslationTable:
    @pytest.fixture
    def table(self) -> TranslationTable:
        return TranslationTable(
            [
                TranslationRecord("Lightning Bolt", "Foudre", "fr", "Éphémère"),
                TranslationRecord("Black Lotus", "Lotus noir", "fr", "Artefact"),
            ]
        )

    def test_translate_both_directions(self, table: TranslationTable) -> None:
        assert table.translate("Lightning Bolt", "fr") == "Foudre"
        assert table.translate("lotus noir", "en") == "Black Lotus"

    def test_partial_match(self, table: TranslationTable) -> None:
        assert table.translate("Lotus", "fr") == "Lotus noir"

    def test_unknown_name(self, table: TranslationTable) -> None:
        assert table.translate("Counterspell", "fr") is None

    def test_enrich_keeps_identifiers(self, table: TranslationTable) -> None:
        card = CanonicalCard(
            name="Lightning Bolt",
            set_code="m21",
            collector_number="161",
            type_line="Instant",
            provider_id="e3285e6b",
            multiverse_id=485474,
        )

        enriched = table.enrich(card, "French")

        assert enriched.name == "Foudre"
        assert enriched.type_line == "Éphémère"
        assert enriched.oracle_name == "Lightning Bolt"
        assert enriched.language == "fr"
        assert enriched.provider_id == "e3285e6b"
        assert enriched.multiverse_id == 485474
        assert enriched.set_code == "m21"

    def test_loads_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "translations.json"
        path.write_text(
            json.dumps([{"name_en": "Shock", "name_localized": "Choc", "language": "fr"}]),
            encoding="utf-8",
        )

        assert TranslationTable(path=path).translate("Shock", "fr") == "Choc"

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        table = TranslationTable(path=tmp_path / "absent.json")

        assert len(table) == 0
        assert table.translate("Shock", "fr") is None


class TestForeignNames:
    def test_lookup_accepts_language_names(self) -> None:
        card = CanonicalCard(
            name="Lightning Bolt",
            foreign_names=(ForeignName(language="French", name="Foudre"),),
        )

        assert card.foreign_name("fr") is not None
        assert card.foreign_name("de") is None
