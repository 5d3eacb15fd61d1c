"""入力 CSV (query, name, sku, position) の読み込みと正規化.

- 先頭ヘッダーの BOM を除去
- query が空の行は直前の query を引き継ぐ（グループ化された入力に対応）
- name / sku / position のいずれかが空の行は読み飛ばす
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from rankcheck.models import ExpectedEntry

logger = logging.getLogger(__name__)

_BOM = "\ufeff"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _clean_header(name: str | None) -> str:
    return (name or "").replace(_BOM, "").strip().lower()


def _parse_position(value: str | None) -> int | None:
    """先頭の整数部分を順位とする ("2.0" -> 2, "3abc" -> 3). 0 や数字なしは None."""
    match = _LEADING_INT.match(value or "")
    if not match:
        return None
    return int(match.group(1)) or None


def parse_input_rows(rows: Iterable[Mapping[str, str | None]]) -> list[ExpectedEntry]:
    """入力行を ExpectedEntry のリストに変換する.

    Args:
        rows: csv.DictReader 相当の dict（ヘッダー名は正規化前で可）

    Returns:
        入力順の ExpectedEntry リスト
    """
    entries: list[ExpectedEntry] = []
    last_query = ""

    for raw in rows:
        row = {_clean_header(k): (v or "").strip() for k, v in raw.items() if k is not None}
        name = row.get("name", "")
        sku = row.get("sku", "")
        position = row.get("position", "")
        if not (name and sku and position):
            continue

        query = row.get("query", "")
        if query:
            last_query = query
        else:
            query = last_query

        entries.append(ExpectedEntry(
            query=query,
            expected_name=name,
            expected_sku=sku,
            expected_position=_parse_position(position),
        ))

    return entries


def group_expected(entries: Iterable[ExpectedEntry]) -> dict[str, list[ExpectedEntry]]:
    """クエリ単位にまとめ、期待順位の昇順に並べる.

    クエリの並びは初出順。順位が不明なものは末尾。
    """
    grouped: dict[str, list[ExpectedEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.query, []).append(entry)

    return {
        query: sorted(
            items,
            key=lambda e: (e.expected_position is None, e.expected_position or 0),
        )
        for query, items in grouped.items()
    }


def load_input_csv(path: str | Path) -> dict[str, list[ExpectedEntry]]:
    """入力 CSV を読み込み、クエリ単位の期待商品リストを返す."""
    path = Path(path)
    with path.open(encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            logger.warning("入力 CSV が空です: %s", path)
            return {}

        rows = [dict(zip(header, values)) for values in reader if len(values) >= len(header)]

    entries = parse_input_rows(rows)
    grouped = group_expected(entries)
    logger.info("入力 CSV 読み込み: %s (%d 行, %d クエリ)", path, len(entries), len(grouped))
    return grouped
