"""位置比較 CSV レポートの生成とパース.

1 行 = 1 順位スロット (PositionDetail)。全値をダブルクォートで囲み、
クエリのグループ間には空行を 2 行入れる。
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rankcheck.models import FlatRow, MatchStatus, QueryResult, SlotStatus

logger = logging.getLogger(__name__)

REPORT_HEADERS = [
    "Input Query",
    "Input Expected Name",
    "Actual Product Name",
    "Input Expected SKU",
    "Actual SKU",
    "Input Expected Position",
    "Actual Position",
    "Position Match",
]
FIRST_PAGE_HEADERS = ["First Page Count", "First Page Coverage %"]

NO_PRODUCT = "No Product"
NOT_AVAILABLE = "N/A"
NOT_FOUND_PREFIX = "No Record Found For Expected SKU :- "


def _text(value) -> str:
    return "" if value is None else str(value)


def build_report_rows(result: QueryResult, include_first_page: bool = True) -> list[list[str]]:
    """1 クエリ分のレポート行を作る.

    期待 SKU のあるスロットは SKU で実際の順位を引き、スロットの順位と
    一致すれば Match、違えば Mismatch、見つからなければ Not Match。
    """
    actual_by_sku = {m.expected_sku: m.actual_position for m in result.mappings}
    rows: list[list[str]] = []

    for detail in result.details:
        actual_position = ""
        position_match = MatchStatus.NONE

        if detail.status is SlotStatus.NO_RESPONSE:
            position_match = MatchStatus.NO_RESPONSE
        elif detail.expected_sku:
            found = actual_by_sku.get(detail.expected_sku)
            if found is not None:
                actual_position = str(found)
                position_match = (
                    MatchStatus.MATCH if found == detail.position else MatchStatus.MISMATCH
                )
            else:
                actual_position = NOT_FOUND_PREFIX + detail.expected_sku
                position_match = MatchStatus.NOT_MATCH

        expected_position = (
            detail.expected_position
            if detail.expected_position is not None
            else detail.position
        )
        row = [
            result.query,
            _text(detail.expected_name),
            detail.actual_name or NO_PRODUCT,
            _text(detail.expected_sku),
            detail.actual_sku or NOT_AVAILABLE,
            _text(expected_position),
            actual_position,
            position_match.value,
        ]
        if include_first_page:
            if not rows and result.coverage is not None:
                row += [result.coverage.count_label, result.coverage.coverage_label]
            else:
                row += ["", ""]
        rows.append(row)

    return rows


def generate_csv(
    results: Sequence[QueryResult],
    include_first_page: bool = True,
    group_spacing: bool = True,
) -> str:
    """全クエリの結果を CSV 文字列にする."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")

    headers = REPORT_HEADERS + (FIRST_PAGE_HEADERS if include_first_page else [])
    writer.writerow(headers)

    for i, result in enumerate(results):
        rows = build_report_rows(result, include_first_page)
        if not rows:
            continue
        writer.writerows(rows)
        if group_spacing and i < len(results) - 1:
            buf.write("\n\n")

    return buf.getvalue()


def parse_report_csv(content: str) -> list[FlatRow]:
    """CSV レポートを FlatRow のリストにパースする.

    空行は読み飛ばし、ヘッダーより列数が少ない行も読み飛ばす。
    """
    reader = csv.reader(io.StringIO(content))
    header: list[str] | None = None
    rows: list[FlatRow] = []

    for values in reader:
        if not any(v.strip() for v in values):
            continue
        if header is None:
            header = [v.replace("\ufeff", "").strip() for v in values]
            continue
        if len(values) < len(header):
            continue

        v = [x.strip() for x in values] + [""] * max(0, 10 - len(values))
        rows.append(FlatRow(
            query=v[0],
            expected_name=v[1],
            actual_name=v[2],
            expected_sku=v[3],
            actual_sku=v[4],
            expected_pos=v[5],
            actual_pos=v[6],
            status=v[7],
            first_page_count=v[8],
            first_page_coverage=v[9],
        ))

    return rows


def write_csv(content: str, output_dir: str | Path, now: datetime | None = None) -> Path:
    """CSV を POSITION_COMPARISON_<日付>_<時刻>.csv として保存する."""
    now = now or datetime.now()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    path = output_dir / f"POSITION_COMPARISON_{now.strftime('%Y-%m-%d_%H-%M-%S')}.csv"
    path.write_text(content, encoding="utf-8")
    logger.info("CSV レポート保存: %s", path)
    return path
