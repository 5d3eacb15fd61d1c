"""検索 API 位置比較テスト — メインエントリーポイント.

処理フロー:
  1. 入力 CSV から期待商品を読み込み、クエリ単位にまとめる
  2. 各クエリで検索 API を呼び出す（リトライ・複数ページ対応）
  3. 期待順位と実際の順位を照合（SKU ベース・位置ベース）
  4. 1ページ目カバレッジを算出
  5. CSV レポートと HTML ダッシュボードを出力
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rankcheck.client import SearchAPIError, fetch_all_pages, wait_between_queries
from rankcheck.compare import (
    build_slot_details,
    first_page_coverage,
    index_by_position,
    no_response_detail,
    reconcile,
)
from rankcheck.config import INPUT_CSV, LOG_DIR, MAX_PAGES, OUTPUT_DIR, RESULTS_PER_PAGE
from rankcheck.models import ExpectedEntry, MappingStatus, QueryResult, SlotStatus
from rankcheck.normalize import load_input_csv
from rankcheck.report_csv import generate_csv, write_csv
from rankcheck.report_html import generate_html_report

logger = logging.getLogger(__name__)

_SLOT_MARKS = {
    SlotStatus.EXACT_MATCH: "MATCH",
    SlotStatus.POSITION_MISMATCH: "MISMATCH",
    SlotStatus.MISSING_PRODUCT: "MISSING",
}


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"rankcheck_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def _log_listing(result: QueryResult) -> None:
    """全順位の一覧と期待商品ごとの照合結果をログに出す."""
    logger.info("%-4s | %-60s | %-15s | %s", "Pos", "Product Name", "SKU", "Expected?")
    for d in result.details:
        if d.status is SlotStatus.NONE:
            mark = "-"
        else:
            mark = f"{_SLOT_MARKS[d.status]} (Expected: {d.expected_name} | SKU: {d.expected_sku})"
        logger.info(
            "%-4s | %-60s | %-15s | %s",
            d.position, (d.actual_name or "[NO PRODUCT RETURNED]")[:58], d.actual_sku or "N/A", mark,
        )

    logger.info("%-50s | %-15s | %-12s | %-12s | %s",
                "Product Name", "SKU", "Expected Pos", "Actual Pos", "Status")
    for m in result.mappings:
        logger.info(
            "%-50s | %-15s | %-12s | %-12s | %s",
            m.expected_name[:48], m.expected_sku,
            m.expected_position or "N/A", m.actual_position or "NOT FOUND", m.status_label,
        )


def run_query(
    index: int,
    query: str,
    expected: list[ExpectedEntry],
    max_pages: int = MAX_PAGES,
    page_size: int = RESULTS_PER_PAGE,
) -> QueryResult:
    """1 クエリを実行して照合する. API 失敗時は No Response として記録."""
    result = QueryResult(test_number=index + 1, query=query, expected=expected)
    start = time.time()

    try:
        response = fetch_all_pages(query, max_pages=max_pages, query_index=index, page_size=page_size)
    except SearchAPIError as e:
        logger.error("クエリ失敗: query=%s, error=%s", query, e)
        result.api_status = "ERROR"
        result.response_time = time.time() - start
        result.details = [no_response_detail()]
        result.test_result = f"FAILED - {e}"
        return result

    result.response_time = time.time() - start
    result.api_status = response.status_code
    result.total_results = response.total_results
    result.actual = response.products

    result.mappings = reconcile(expected, result.actual)
    result.details = build_slot_details(result.actual, index_by_position(expected))
    # 1ページ目の判定は page 1 の商品のみで行う
    first_page = [p for p in result.actual if p.page_number in (None, 1)]
    result.coverage = first_page_coverage(expected, first_page, page_size)
    result.test_result = f"{result.exact_matches}/{len(expected)} matches"

    _log_listing(result)
    logger.info(
        "サマリ: %s | 取得件数: %d | 1ページ目: %s",
        result.test_result,
        len(result.actual),
        result.coverage.count_label if result.coverage else "N/A",
    )
    return result


def summarize(results: Sequence[QueryResult]) -> dict[str, int]:
    """全クエリの実行サマリ."""
    failed = [r for r in results if r.failed]
    summary = {
        "total": len(results),
        "successful": len(results) - len(failed),
        "failed": len(failed),
        "comparisons": sum(r.comparisons for r in results),
        "matches": sum(r.exact_matches for r in results),
        "found_elsewhere": sum(
            1 for r in results for m in r.mappings if m.status is MappingStatus.FOUND_ELSEWHERE
        ),
        "not_found": sum(
            1 for r in results for m in r.mappings if m.status is MappingStatus.NOT_FOUND
        ),
    }

    logger.info("クエリ実行: %d 件, 成功: %d 件, 失敗: %d 件",
                summary["total"], summary["successful"], summary["failed"])
    logger.info("位置比較: %d 件, 完全一致: %d 件, 不一致: %d 件",
                summary["comparisons"], summary["matches"],
                summary["comparisons"] - summary["matches"])
    for r in results:
        status = "FAILED" if r.failed else "SUCCESS"
        logger.info("  %d. \"%s\": %s - %s", r.test_number, r.query, status, r.test_result)
    return summary


def run(
    input_csv: str | Path = INPUT_CSV,
    output_dir: str | Path = OUTPUT_DIR,
    max_pages: int = MAX_PAGES,
) -> list[QueryResult]:
    """メイン処理."""
    setup_logging()
    logger.info("=== 検索 API 位置比較テスト 開始 ===")
    start_time = time.time()

    # 1. 入力読み込み
    test_cases = load_input_csv(input_csv)
    if not test_cases:
        logger.warning("入力 CSV に期待商品がありません。終了します。")
        return []

    # 2-4. クエリごとに実行
    results: list[QueryResult] = []
    for i, (query, expected) in enumerate(test_cases.items()):
        logger.info("[TEST %d/%d] query=%s, 期待商品: %d 件",
                    i + 1, len(test_cases), query, len(expected))
        results.append(run_query(i, query, expected, max_pages=max_pages))

        if i < len(test_cases) - 1:
            wait_between_queries(i)

    summarize(results)

    # 5. レポート出力
    now = datetime.now()
    csv_content = generate_csv(results)
    write_csv(csv_content, output_dir, now)
    try:
        generate_html_report(csv_content, output_dir, now)
    except (OSError, ValueError) as e:
        logger.error("HTML レポート生成失敗: %s", e)

    elapsed = time.time() - start_time
    logger.info("=== 検索 API 位置比較テスト 完了 (所要時間: %.1f 秒) ===", elapsed)
    return results


if __name__ == "__main__":
    run()
