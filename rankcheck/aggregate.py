"""レポート行のクエリ単位集計と正解率バンド.

集計は純粋関数で、各グループはイミュータブル。
同じ入力からは常に同じ結果を返す。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace

from rankcheck.models import (
    FirstPageTracking,
    FlatRow,
    MatchStatus,
    OverallStats,
    QueryAccuracyGroup,
    ReportDetail,
)

logger = logging.getLogger(__name__)

# ダッシュボードのドロップダウン順
BANDS = (
    "90-100", "80-90", "70-80", "60-70", "50-60",
    "40-50", "30-40", "20-30", "10-20", "0-10",
)

_COUNTERS = {
    MatchStatus.MATCH: "matches",
    MatchStatus.MISMATCH: "mismatches",
    MatchStatus.NOT_MATCH: "not_match",
}


def percentage(numerator: int, denominator: int) -> str | int:
    """小数点以下 2 桁の文字列. 分母 0 のときは数値の 0."""
    if denominator <= 0:
        return 0
    return f"{numerator / denominator * 100:.2f}"


def accuracy(group: QueryAccuracyGroup) -> str | int:
    """完全一致の割合 (%)."""
    return percentage(group.matches, group.total_expected)


def _fold_row(group: QueryAccuracyGroup, row: FlatRow) -> QueryAccuracyGroup:
    changes: dict = {}

    if row.expected_name.strip():
        changes["total_expected"] = group.total_expected + 1
        counter = _COUNTERS.get(MatchStatus.parse(row.status))
        if counter:
            changes[counter] = getattr(group, counter) + 1

    # 1ページ目の値は最初に見つかったものだけ採用
    if row.first_page_count and not group.first_page_count:
        changes["first_page_count"] = row.first_page_count
    if row.first_page_coverage and not group.first_page_coverage:
        changes["first_page_coverage"] = row.first_page_coverage

    detail = ReportDetail(
        expected_name=row.expected_name,
        actual_name=row.actual_name,
        expected_sku=row.expected_sku,
        actual_sku=row.actual_sku,
        expected_pos=row.expected_pos,
        actual_pos=row.actual_pos,
        status=row.status,
    )
    changes["details"] = group.details + (detail,)
    return replace(group, **changes)


def group_by_query(rows: Iterable[FlatRow]) -> dict[str, QueryAccuracyGroup]:
    """レポート行をクエリ単位に集計する.

    - query が空の行は無視
    - expected_name が空の行（期待なしのスロット）は分母に数えない
    - status は match / mismatch / not match のみカウント（それ以外は無視）
    """
    groups: dict[str, QueryAccuracyGroup] = {}
    for row in rows:
        query = row.query.strip()
        if not query:
            continue
        group = groups.get(query) or QueryAccuracyGroup(query=query)
        groups[query] = _fold_row(group, row)

    logger.debug("集計クエリ数: %d", len(groups))
    return groups


def overall_stats(groups: Mapping[str, QueryAccuracyGroup]) -> OverallStats:
    """全クエリの合計と平均正解率.

    1ページ目トラッキングは各グループの first_page_count ではなく
    matches / total_expected の合計から算出する（正解率と同じ値になる）。
    """
    total_products = sum(g.total_expected for g in groups.values())
    total_matches = sum(g.matches for g in groups.values())
    total_mismatches = sum(g.mismatches for g in groups.values())

    return OverallStats(
        total_queries=len(groups),
        total_products=total_products,
        total_matches=total_matches,
        total_mismatches=total_mismatches,
        average_accuracy=percentage(total_matches, total_products),
        first_page_tracking=FirstPageTracking(
            total_found=total_matches,
            total_expected=total_products,
            average_coverage=percentage(total_matches, total_products),
        ),
    )


def band(accuracy_percent: float | str) -> str | None:
    """正解率 (%) をバンド名に変換する.

    [low, high) の半開区間。最上位の 90-100 のみ 100 を含む。
    0〜100 の範囲外は None。
    """
    try:
        value = float(accuracy_percent)
    except (TypeError, ValueError):
        return None

    if value < 0 or value > 100:
        return None
    if value >= 90:
        return "90-100"
    low = int(value // 10) * 10
    return f"{low}-{low + 10}"


def passes_filter(
    group: QueryAccuracyGroup, search_term: str | None = "", band_name: str = "all"
) -> bool:
    """検索語 (部分一致・大文字小文字無視) とバンドの AND 条件."""
    term = (search_term or "").strip().lower()
    if term and term not in group.query.lower():
        return False
    if band_name == "all":
        return True
    return band(accuracy(group)) == band_name


def accuracy_class(accuracy_percent: float | str) -> str:
    """バッジ・グラフの色分け用クラス名."""
    value = float(accuracy_percent)
    if value >= 80:
        return "accuracy-high"
    if value >= 50:
        return "accuracy-medium"
    return "accuracy-low"


def to_interchange(groups: Mapping[str, QueryAccuracyGroup]) -> dict[str, dict]:
    """ダッシュボードに埋め込む JSON 用の dict (camelCase)."""
    data: dict[str, dict] = {}
    for query, g in groups.items():
        data[query] = {
            "query": g.query,
            "totalExpected": g.total_expected,
            "matches": g.matches,
            "mismatches": g.mismatches,
            "notMatch": g.not_match,
            "firstPageCount": g.first_page_count,
            "firstPageCoverage": g.first_page_coverage,
            "accuracy": accuracy(g),
            "details": [
                {
                    "expectedName": d.expected_name,
                    "actualName": d.actual_name,
                    "expectedSku": d.expected_sku,
                    "actualSku": d.actual_sku,
                    "expectedPos": d.expected_pos,
                    "actualPos": d.actual_pos,
                    "status": d.status,
                }
                for d in g.details
            ],
        }
    return data
