"""main モジュールのユニットテスト."""

from pathlib import Path
from unittest.mock import MagicMock, patch

from rankcheck.client import SearchAPIError, SearchResponse
from rankcheck.models import ActualEntry, ExpectedEntry, SlotStatus
from rankcheck.main import run, run_query, summarize

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _expected() -> list[ExpectedEntry]:
    return [
        ExpectedEntry("shoes", "Shoe A", "A", 1),
        ExpectedEntry("shoes", "Shoe B", "B", 2),
    ]


def _response(*skus: str, page_number=None) -> SearchResponse:
    products = [
        ActualEntry(
            f"Product {sku}", sku, i,
            page_number=page_number,
            absolute_position=i if page_number else None,
        )
        for i, sku in enumerate(skus, start=1)
    ]
    return SearchResponse(products=products, status_code=200, total_results=len(products), pages_fetched=1)


class TestRunQuery:
    """run_query のテスト."""

    @patch("rankcheck.main.fetch_all_pages")
    def test_success(self, mock_fetch):
        mock_fetch.return_value = _response("A", "C", "B")

        result = run_query(0, "shoes", _expected())

        assert result.api_status == 200
        assert result.test_number == 1
        assert [m.status_label for m in result.mappings] == ["Exact Match", "Found at Position 3"]
        assert result.exact_matches == 1
        assert result.comparisons == 2
        assert result.coverage.count_label == "2 of 2"
        assert result.test_result == "1/2 matches"
        assert not result.failed

    @patch("rankcheck.main.fetch_all_pages")
    def test_failure_recorded_as_no_response(self, mock_fetch):
        """API 失敗時は No Response 明細を 1 行だけ持つこと."""
        mock_fetch.side_effect = SearchAPIError("timeout")

        result = run_query(1, "boots", _expected())

        assert result.failed
        assert result.api_status == "ERROR"
        assert result.test_result == "FAILED - timeout"
        assert [d.status for d in result.details] == [SlotStatus.NO_RESPONSE]
        assert result.mappings == []
        assert result.coverage is None

    @patch("rankcheck.client.time.sleep")
    @patch("rankcheck.client.requests.get")
    def test_malformed_body_recorded_as_no_response(self, mock_get, mock_sleep):
        """200 でも本文が null の応答が続けば、実行を止めずに No Response として記録すること."""
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = None

        result = run_query(0, "shoes", _expected())

        assert result.failed
        assert [d.status for d in result.details] == [SlotStatus.NO_RESPONSE]

    @patch("rankcheck.main.fetch_all_pages")
    def test_coverage_uses_first_page_only(self, mock_fetch):
        """複数ページ取得時も 1ページ目の商品だけでカバレッジを求めること."""
        response = _response("A", page_number=1)
        response.products.append(ActualEntry("Product B", "B", 1, page_number=2, absolute_position=2))
        mock_fetch.return_value = response

        result = run_query(0, "shoes", _expected(), max_pages=2)

        assert result.coverage.count_label == "1 of 2"
        # SKU ベースの照合では 2ページ目も対象
        assert result.exact_matches == 2


class TestSummarize:
    @patch("rankcheck.main.fetch_all_pages")
    def test_counts(self, mock_fetch):
        mock_fetch.side_effect = [_response("B", "Z"), SearchAPIError("down")]
        results = [
            run_query(0, "shoes", _expected()),
            run_query(1, "boots", _expected()),
        ]

        summary = summarize(results)

        assert summary["total"] == 2
        assert summary["successful"] == 1
        assert summary["failed"] == 1
        assert summary["comparisons"] == 2
        assert summary["matches"] == 0
        assert summary["found_elsewhere"] == 1
        assert summary["not_found"] == 1


@patch("rankcheck.main.setup_logging")
@patch("rankcheck.main.wait_between_queries")
@patch("rankcheck.main.fetch_all_pages")
class TestRun:
    """run のテスト."""

    def test_writes_reports(self, mock_fetch, mock_wait, mock_setup, tmp_path):
        mock_fetch.side_effect = [
            _response("SKU-100", "SKU-200", "SKU-300"),
            SearchAPIError("down"),
        ]

        results = run(FIXTURES_DIR / "input.csv", tmp_path)

        assert [r.query for r in results] == ["running shoes", "boots"]
        # 最後のクエリの後は待機しない
        assert mock_wait.call_count == 1

        csv_files = list(tmp_path.glob("POSITION_COMPARISON_*.csv"))
        html_files = list(tmp_path.glob("API_TEST_REPORT_*.html"))
        assert len(csv_files) == 1
        assert len(html_files) == 1

        content = csv_files[0].read_text(encoding="utf-8")
        assert '"boots","No Response"' in content
        assert '"running shoes","Trail Running Shoe"' in content

    def test_empty_input(self, mock_fetch, mock_wait, mock_setup, tmp_path):
        input_csv = tmp_path / "input.csv"
        input_csv.write_text("query,name,sku,position\n", encoding="utf-8")

        assert run(input_csv, tmp_path / "out") == []
        mock_fetch.assert_not_called()
        assert not (tmp_path / "out").exists()
