"""Tests for the card list parser."""

from cardvault.parsers.csv_import import (
    detect_separator,
    looks_like_header,
    map_headers,
    parse_rows,
)


class TestSeparatorDetection:
    def test_tab_wins_over_comma(self) -> None:
        assert detect_separator("Name\tQuantity\tSet, extra") == "\t"

    def test_semicolon(self) -> None:
        assert detect_separator("Name;Quantity;Set") == ";"

    def test_defaults_to_comma(self) -> None:
        assert detect_separator("Lightning Bolt") == ","


class TestHeaderMapping:
    def test_maps_aliases(self) -> None:
        columns = map_headers(
            ["Card Name", "Qty", "Set Code", "Collector Number", "Scryfall ID", "Multiverse Id"]
        )

        assert columns == {
            "name": 0,
            "quantity": 1,
            "set_code": 2,
            "collector_number": 3,
            "provider_id": 4,
            "multiverse_id": 5,
        }

    def test_set_name_is_not_taken_as_card_name(self) -> None:
        columns = map_headers(["Set name", "Name", "Quantity"])

        assert columns["name"] == 1
        assert columns["set_name"] == 0


class TestParseRows:
    def test_header_export(self, sample_csv: str) -> None:
        rows = parse_rows(sample_csv)

        assert len(rows) == 3
        bolt = rows[0]
        assert bolt.name == "Lightning Bolt"
        assert bolt.quantity == 4
        assert bolt.set_code == "M21"
        assert bolt.set_name == "Core Set 2021"
        assert bolt.collector_number == "161"
        assert bolt.rarity == "common"
        assert bolt.condition == "near_mint"

    def test_quoted_double_faced_name(self, sample_csv: str) -> None:
        delver = parse_rows(sample_csv)[2]

        assert delver.name == "Delver of Secrets // Insectile Aberration"
        assert delver.is_double_faced_name
        assert delver.language == "fr"

    def test_headerless_name_quantity_set(self) -> None:
        rows = parse_rows("Lightning Bolt,4,M21\nCounterspell,2\nShock")

        assert [(r.name, r.quantity, r.set_code) for r in rows] == [
            ("Lightning Bolt", 4, "M21"),
            ("Counterspell", 2, None),
            ("Shock", None, None),
        ]

    def test_simple_quantity_lines(self) -> None:
        rows = parse_rows("4 Lightning Bolt\n2x Counterspell")

        assert [(r.name, r.quantity) for r in rows] == [
            ("Lightning Bolt", 4),
            ("Counterspell", 2),
        ]

    def test_comments_and_blank_lines_are_ignored(self) -> None:
        rows = parse_rows("# my binder\n\nLightning Bolt,4\n   \n# end\n")

        assert [r.name for r in rows] == ["Lightning Bolt"]

    def test_invalid_numbers_are_dropped(self) -> None:
        rows = parse_rows("Name,Quantity,Multiverse ID\nLightning Bolt,many,abc\nShock,-1,0")

        assert rows[0].quantity is None
        assert rows[0].multiverse_id is None
        assert rows[1].quantity is None

    def test_rows_without_name_are_skipped(self) -> None:
        rows = parse_rows("Name,Quantity,Set\n,4,M21\nShock,1,M21")

        assert [r.name for r in rows] == ["Shock"]

    def test_tab_separated_with_ids(self) -> None:
        text = (
            "Name\tQuantity\tScryfall ID\tMultiverse ID\n"
            "Lightning Bolt\t1\te3285e6b-3e79-4d7c-bf96-d920f973b80d\t442130\n"
        )

        row = parse_rows(text)[0]

        assert row.provider_id == "e3285e6b-3e79-4d7c-bf96-d920f973b80d"
        assert row.multiverse_id == 442130

    def test_empty_input(self) -> None:
        assert parse_rows("") == []
        assert parse_rows("\n\n") == []

    def test_header_after_leading_comment(self) -> None:
        rows = parse_rows("# exported 2024\nName,Quantity,Set code\nLightning Bolt,4,M21\n")

        assert [(r.name, r.quantity, r.set_code) for r in rows] == [("Lightning Bolt", 4, "M21")]

    def test_card_row_with_header_words_is_not_a_header(self) -> None:
        rows = parse_rows("Nameless Race,1,Sunset\nShock,2,M21")

        assert [(r.name, r.quantity, r.set_code) for r in rows] == [
            ("Nameless Race", 1, "Sunset"),
            ("Shock", 2, "M21"),
        ]


class TestHeaderDetection:
    def test_name_and_quantity_cells(self) -> None:
        assert looks_like_header(["Card Name", "Qty"])
        assert looks_like_header(["Name", "Set"])

    def test_name_column_alone_is_not_a_header(self) -> None:
        assert not looks_like_header(["Name", "Rarity"])

    def test_words_inside_cells_do_not_count(self) -> None:
        assert not looks_like_header(["Nameless Race", "1", "Sunset"])
