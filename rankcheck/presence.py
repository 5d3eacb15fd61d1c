"""入力商品リストが検索結果のどこかに出現したかのチェック."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from rankcheck.aggregate import group_by_query, percentage
from rankcheck.models import InvalidArgumentError, PresenceReport, QueryAccuracyGroup
from rankcheck.report_csv import parse_report_csv

logger = logging.getLogger(__name__)

# CSV レポート上のプレースホルダー（実在の商品ではない）
_PLACEHOLDER_NAMES = {"No Product", "No Response"}


def _sku_of(item) -> str | None:
    if isinstance(item, Mapping):
        return item.get("sku")
    return getattr(item, "sku", None)


def check_presence(targets: Sequence, pool: Iterable) -> PresenceReport:
    """targets の各商品が pool に存在するかを SKU で判定する.

    SKU は大文字小文字・前後空白を無視して比較する。SKU のない商品は未検出。

    Args:
        targets: {"sku": ...} または sku 属性を持つ商品のリスト（空不可）
        pool: 全クエリで観測された実際の商品

    Raises:
        InvalidArgumentError: targets が空のとき
    """
    if not targets:
        raise InvalidArgumentError("Input products array is required and must not be empty")

    # SKU (小文字) で重複排除
    seen: set[str] = set()
    for product in pool:
        sku = _sku_of(product)
        if sku:
            seen.add(sku.strip().lower())

    found = 0
    for target in targets:
        sku = (_sku_of(target) or "").strip().lower()
        if sku and sku in seen:
            found += 1

    report = PresenceReport(
        total_input=len(targets),
        total_found=found,
        total_missing=len(targets) - found,
        found_percentage=percentage(found, len(targets)),
    )
    logger.info("存在チェック: %s", report.message)
    return report


def collect_actual_products(groups: Mapping[str, QueryAccuracyGroup]) -> list[dict[str, str]]:
    """レポート明細から実際に返却された商品を集める."""
    products: list[dict[str, str]] = []
    for group in groups.values():
        for detail in group.details:
            if (
                detail.actual_name
                and detail.actual_sku
                and detail.actual_name not in _PLACEHOLDER_NAMES
            ):
                products.append({"name": detail.actual_name, "sku": detail.actual_sku})
    return products


def check_presence_in_report(targets: Sequence, csv_content: str) -> PresenceReport:
    """CSV レポートに含まれる全商品を pool として存在チェックする.

    Raises:
        InvalidArgumentError: targets が空、または csv_content が文字列でないとき
    """
    if not targets:
        raise InvalidArgumentError("Input products array is required and must not be empty")
    if not isinstance(csv_content, str) or not csv_content:
        raise InvalidArgumentError("CSV content is required")

    groups = group_by_query(parse_report_csv(csv_content))
    return check_presence(targets, collect_actual_products(groups))
