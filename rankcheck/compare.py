"""期待順位と実際の検索結果の照合.

2 つの視点で照合する:
  - reconcile: 期待商品ごとに「実際は何位にあったか」(SKU ベース)
  - build_slot_details: 順位スロットごとに「N 位に何があったか」(位置ベース)

SKU 比較は reconcile / build_slot_details では完全一致、
first_page_coverage では大文字小文字・前後空白を無視する。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from rankcheck.models import (
    ActualEntry,
    ExpectedEntry,
    FirstPageCoverage,
    FoundProduct,
    MappingStatus,
    PositionDetail,
    PositionMapping,
    SlotStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24


def _index_by_sku(actual: Sequence[ActualEntry]) -> dict[str, tuple[int, ActualEntry]]:
    """SKU -> (順位, 商品). 重複 SKU は先に出現したものを採用."""
    index: dict[str, tuple[int, ActualEntry]] = {}
    for i, product in enumerate(actual):
        if product.sku not in index:
            index[product.sku] = (product.rank_at(i), product)
    return index


def reconcile(
    expected: Sequence[ExpectedEntry], actual: Sequence[ActualEntry]
) -> list[PositionMapping]:
    """全期待商品の実際の順位を求める.

    期待商品は入力順のまま処理する（並べ替えない）。

    Returns:
        期待商品と同じ順序の PositionMapping リスト
    """
    by_sku = _index_by_sku(actual)
    mappings: list[PositionMapping] = []

    for exp in expected:
        hit = by_sku.get(exp.expected_sku)
        if hit is None:
            mappings.append(PositionMapping(
                expected_name=exp.expected_name,
                expected_sku=exp.expected_sku,
                expected_position=exp.expected_position,
                actual_position=None,
                status=MappingStatus.NOT_FOUND,
            ))
            continue

        rank, product = hit
        status = (
            MappingStatus.EXACT_MATCH
            if rank == exp.expected_position
            else MappingStatus.FOUND_ELSEWHERE
        )
        mappings.append(PositionMapping(
            expected_name=exp.expected_name,
            expected_sku=exp.expected_sku,
            expected_position=exp.expected_position,
            actual_position=rank,
            status=status,
            page_number=product.page_number,
            actual_product=product,
        ))

    return mappings


def index_by_position(expected: Sequence[ExpectedEntry]) -> dict[int, ExpectedEntry]:
    """期待順位 -> 期待商品. 同じ順位が重複した場合は後勝ち."""
    return {
        exp.expected_position: exp
        for exp in expected
        if exp.expected_position is not None
    }


def build_slot_details(
    actual: Sequence[ActualEntry], expected_by_position: Mapping[int, ExpectedEntry]
) -> list[PositionDetail]:
    """全順位スロットの明細を作る.

    返却された各商品の順位について、その順位を期待している商品があれば
    SKU を比較する。最後に、返却件数より後ろの順位を期待していた商品を
    Missing Product として追加する。
    """
    details: list[PositionDetail] = []

    for i, product in enumerate(actual):
        position = product.rank_at(i)
        exp = expected_by_position.get(position)
        if exp is None:
            details.append(PositionDetail(
                position=position,
                actual_name=product.name,
                actual_sku=product.sku,
                expected_name=None,
                expected_sku=None,
                expected_position=None,
            ))
            continue

        status = (
            SlotStatus.EXACT_MATCH
            if product.sku == exp.expected_sku
            else SlotStatus.POSITION_MISMATCH
        )
        details.append(PositionDetail(
            position=position,
            actual_name=product.name,
            actual_sku=product.sku,
            expected_name=exp.expected_name,
            expected_sku=exp.expected_sku,
            expected_position=exp.expected_position,
            status=status,
        ))

    for exp in expected_by_position.values():
        if exp.expected_position is not None and exp.expected_position > len(actual):
            details.append(PositionDetail(
                position=exp.expected_position,
                actual_name=None,
                actual_sku=None,
                expected_name=exp.expected_name,
                expected_sku=exp.expected_sku,
                expected_position=exp.expected_position,
                status=SlotStatus.MISSING_PRODUCT,
            ))

    return details


def no_response_detail() -> PositionDetail:
    """API 応答なしのクエリ用のプレースホルダー明細."""
    return PositionDetail(
        position=1,
        actual_name="No Response",
        actual_sku="No Response",
        expected_name="No Response",
        expected_sku="No Response",
        expected_position=1,
        status=SlotStatus.NO_RESPONSE,
    )


def _sku_key(sku: str | None) -> str:
    return (sku or "").strip().lower()


def first_page_coverage(
    expected: Sequence[ExpectedEntry],
    actual: Sequence[ActualEntry],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> FirstPageCoverage | None:
    """期待商品のうち 1 ページ目 (先頭 page_size 件) に入った件数.

    リスト順の先頭 page_size 件で判定し、absolute_position は見ない。

    Returns:
        期待商品が空なら None
    """
    if not expected:
        return None
    if not actual:
        return FirstPageCoverage(found_on_first_page=0, total_expected=len(expected))

    first_page: dict[str, int] = {}
    for i, product in enumerate(actual[:page_size], start=1):
        first_page.setdefault(_sku_key(product.sku), i)

    found: list[FoundProduct] = []
    for exp in expected:
        position = first_page.get(_sku_key(exp.expected_sku))
        if position is not None:
            found.append(FoundProduct(
                expected_name=exp.expected_name,
                expected_sku=exp.expected_sku,
                actual_position=position,
            ))

    logger.debug("1ページ目カバレッジ: %d/%d", len(found), len(expected))
    return FirstPageCoverage(
        found_on_first_page=len(found),
        total_expected=len(expected),
        found_products=tuple(found),
    )
