"""report_html モジュールのユニットテスト."""

import json
from datetime import datetime
from pathlib import Path

from bs4 import BeautifulSoup

from rankcheck.aggregate import BANDS, group_by_query, overall_stats
from rankcheck.models import FlatRow
from rankcheck.report_csv import parse_report_csv
from rankcheck.report_html import build_query_section, generate_html_report, render_dashboard

FIXTURES_DIR = Path(__file__).parent / "fixtures"

GENERATED_AT = datetime(2025, 9, 8, 19, 21, 58)


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def _render(csv_content: str) -> BeautifulSoup:
    groups = group_by_query(parse_report_csv(csv_content))
    html = render_dashboard(groups, overall_stats(groups), GENERATED_AT)
    return BeautifulSoup(html, "html.parser")


class TestRenderDashboard:
    """render_dashboard のテスト."""

    def test_query_sections(self):
        soup = _render(_load_fixture("report.csv"))
        sections = soup.select("div.query-section")

        assert [s["data-query"] for s in sections] == ["running shoes", "boots"]
        assert [s["data-accuracy"] for s in sections] == ["33.33", "0.00"]

    def test_band_options(self):
        soup = _render(_load_fixture("report.csv"))
        options = [o["value"] for o in soup.select("#accuracyFilter option")]

        assert options == ["all", *BANDS]

    def test_overall_cards(self):
        soup = _render(_load_fixture("report.csv"))
        values = [v.get_text() for v in soup.select(".stat-card .stat-value")]

        # クエリ数 / 期待商品数 / 一致 / 不一致 / 正解率 / 1ページ目
        assert values == ["2", "4", "1", "1", "25.00%", "25.00%"]

    def test_timestamp(self):
        soup = _render(_load_fixture("report.csv"))
        assert soup.select_one(".timestamp").get_text() == "Generated: 2025-09-08 19:21:58"

    def test_charts(self):
        soup = _render(_load_fixture("report.csv"))

        assert soup.select_one("canvas#summaryChart") is not None
        assert soup.select_one("canvas#chart-0") is not None
        assert soup.select_one("canvas#chart-1") is not None

    def test_embedded_query_data(self):
        """スクリプトに集計 JSON が埋め込まれていること."""
        soup = _render(_load_fixture("report.csv"))
        script = soup.find_all("script")[-1].get_text()
        payload = script.split("const queryData = ", 1)[1].split(";\n", 1)[0]
        data = json.loads(payload)

        assert data["running shoes"]["matches"] == 1
        assert data["boots"]["totalExpected"] == 1

    def test_escaping(self):
        """クエリ・商品名の HTML がエスケープされること."""
        csv_content = (
            '"Input Query","Input Expected Name","Actual Product Name","Input Expected SKU",'
            '"Actual SKU","Input Expected Position","Actual Position","Position Match"\n'
            '"<b>q</b>","</script><i>x</i>","A","S1","S1","1","1","Match"\n'
        )
        groups = group_by_query(parse_report_csv(csv_content))
        html = render_dashboard(groups, overall_stats(groups), GENERATED_AT)

        assert "<b>q</b>" not in html
        assert "&lt;b&gt;q&lt;/b&gt;" in html
        assert "</script><i>" not in html


class TestBuildQuerySection:
    """build_query_section のテスト."""

    def _section(self) -> BeautifulSoup:
        groups = group_by_query(parse_report_csv(_load_fixture("report.csv")))
        html = build_query_section(0, groups["running shoes"])
        return BeautifulSoup(html, "html.parser")

    def test_stat_cards(self):
        soup = self._section()
        cards = {
            c["data-category"]: c.select_one(".query-stat-value").get_text()
            for c in soup.select(".query-stat")
        }
        assert cards == {
            "expected": "3",
            "matches": "1",
            "mismatches": "1",
            "notMatch": "1",
            "firstPageCount": "2 of 3",
            "firstPageCoverage": "66.67%",
        }

    def test_drill_down_lists(self):
        soup = self._section()

        def rows(list_id: str) -> int:
            return len(soup.select(f"#{list_id} tbody tr"))

        assert rows("product-list-expected-0") == 4
        assert rows("product-list-matches-0") == 1
        assert rows("product-list-mismatches-0") == 1
        assert rows("product-list-notMatch-0") == 1
        # 実際の順位が 1ページ目 (1..24) に入っている明細のみ
        assert rows("product-list-firstPageCount-0") == 2

    def test_status_class(self):
        soup = self._section()
        cell = soup.select("#product-list-notMatch-0 tbody td")[-1]

        assert cell["class"] == ["status-not-match"]
        assert cell.get_text() == "Not Match"

    def test_missing_first_page_values(self):
        groups = group_by_query([FlatRow(query="q", expected_name="E", status="Match")])
        soup = BeautifulSoup(build_query_section(3, groups["q"]), "html.parser")
        card = soup.select_one('.query-stat[data-category="firstPageCount"] .query-stat-value')

        assert card.get_text() == "N/A"


class TestGenerateHtmlReport:
    def test_file_name(self, tmp_path):
        path = generate_html_report(_load_fixture("report.csv"), tmp_path, GENERATED_AT)

        assert path.name == "API_TEST_REPORT_2025-09-08T19-21-58.html"
        assert "running shoes" in path.read_text(encoding="utf-8")
