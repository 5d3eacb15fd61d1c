"""normalize モジュールのユニットテスト."""

from pathlib import Path

from rankcheck.models import ExpectedEntry
from rankcheck.normalize import group_expected, load_input_csv, parse_input_rows

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class TestParseInputRows:
    """parse_input_rows のテスト."""

    def test_basic_row(self):
        entries = parse_input_rows([
            {"query": "shoes", "name": "Shoe A", "sku": "A1", "position": "1"},
        ])
        assert entries == [ExpectedEntry("shoes", "Shoe A", "A1", 1)]

    def test_bom_header(self):
        """先頭ヘッダーの BOM を無視すること."""
        entries = parse_input_rows([
            {"\ufeffquery": "shoes", "name": "Shoe A", "sku": "A1", "position": "1"},
        ])
        assert entries[0].query == "shoes"

    def test_blank_query_inherits_previous(self):
        """query が空の行は直前の query を引き継ぐこと."""
        entries = parse_input_rows([
            {"query": "shoes", "name": "Shoe A", "sku": "A1", "position": "1"},
            {"query": "", "name": "Shoe B", "sku": "B1", "position": "2"},
            {"query": "  ", "name": "Shoe C", "sku": "C1", "position": "3"},
        ])
        assert [e.query for e in entries] == ["shoes", "shoes", "shoes"]

    def test_incomplete_rows_skipped(self):
        """name / sku / position のいずれかが空の行は読み飛ばすこと."""
        entries = parse_input_rows([
            {"query": "shoes", "name": "", "sku": "A1", "position": "1"},
            {"query": "shoes", "name": "Shoe B", "sku": "", "position": "2"},
            {"query": "shoes", "name": "Shoe C", "sku": "C1", "position": ""},
        ])
        assert entries == []

    def test_unparseable_position(self):
        entries = parse_input_rows([
            {"query": "shoes", "name": "Shoe A", "sku": "A1", "position": "first"},
        ])
        assert entries[0].expected_position is None

    def test_leading_integer_position(self):
        """小数や末尾に文字のある順位は先頭の整数を使い、0 は順位なしとすること."""
        entries = parse_input_rows([
            {"query": "shoes", "name": "A", "sku": "A1", "position": "2.0"},
            {"query": "shoes", "name": "B", "sku": "B1", "position": "3abc"},
            {"query": "shoes", "name": "C", "sku": "C1", "position": " 4 "},
            {"query": "shoes", "name": "D", "sku": "D1", "position": "0"},
        ])
        assert [e.expected_position for e in entries] == [2, 3, 4, None]


class TestGroupExpected:
    """group_expected のテスト."""

    def test_sorted_by_position(self):
        grouped = group_expected([
            ExpectedEntry("shoes", "B", "B1", 3),
            ExpectedEntry("shoes", "A", "A1", 1),
            ExpectedEntry("boots", "C", "C1", 2),
            ExpectedEntry("shoes", "X", "X1", None),
        ])
        assert list(grouped) == ["shoes", "boots"]
        assert [e.expected_sku for e in grouped["shoes"]] == ["A1", "B1", "X1"]


class TestLoadInputCsv:
    """load_input_csv のテスト."""

    def test_fixture(self):
        grouped = load_input_csv(FIXTURES_DIR / "input.csv")

        assert list(grouped) == ["running shoes", "boots"]
        assert [e.expected_position for e in grouped["running shoes"]] == [1, 2, 30]
        assert [e.expected_sku for e in grouped["boots"]] == ["SKU-300", "SKU-100"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        assert load_input_csv(path) == {}
