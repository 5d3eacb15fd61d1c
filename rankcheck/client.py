"""検索 API クライアント.

取得戦略:
  1. ヘッダー (User-Agent 等) をクエリ・試行ごとにローテーション
  2. 試行前にランダム待機、タイムアウトは試行ごとに延長
  3. HTTP エラー / 0 件応答は失敗としてバックオフ後にリトライ
  4. 複数ページ取得時は各商品にページ番号と通し順位を付与
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field

import requests

from rankcheck.config import (
    ATTEMPT_DELAY_BASE,
    ATTEMPT_DELAY_JITTER,
    ATTEMPT_DELAY_STEP,
    MAX_RETRIES,
    QUERY_BURST_EXTRA,
    QUERY_BURST_SIZE,
    QUERY_INTERVAL_BASE,
    QUERY_INTERVAL_JITTER,
    QUERY_INTERVAL_MIN,
    REQUEST_TIMEOUT_BASE,
    REQUEST_TIMEOUT_STEP,
    RESULTS_PER_PAGE,
    RETRY_BACKOFF_STEP,
    SEARCH_API_BASE_URL,
    SEARCH_API_PATH,
    SITE_ID,
    USER_AGENTS,
)
from rankcheck.models import ActualEntry

logger = logging.getLogger(__name__)


class SearchAPIError(Exception):
    """リトライ上限まで有効な応答が得られなかった."""


@dataclass
class SearchResponse:
    """1 クエリ分の取得結果."""

    products: list[ActualEntry] = field(default_factory=list)
    status_code: int | None = None
    total_results: int = 0
    pages_fetched: int = 0


def _random_token(length: int) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def generate_headers(query_index: int) -> dict[str, str]:
    """リクエストヘッダーを生成する. User-Agent は query_index でローテーション."""
    headers = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "User-Agent": USER_AGENTS[query_index % len(USER_AGENTS)],
        "X-Requested-With": "XMLHttpRequest",
        "X-Session-ID": f"session_{int(time.time() * 1000)}_{_random_token(9)}",
    }
    if random.random() > 0.5:
        headers["Accept-Encoding"] = "gzip, deflate, br"
    if random.random() > 0.6:
        headers["Connection"] = "keep-alive"
    if random.random() > 0.7:
        headers["DNT"] = "1"
    return headers


def build_params(query: str, page: int = 1, per_page: int = RESULTS_PER_PAGE) -> dict[str, str]:
    """検索パラメータ. キャッシュ回避用の timestamp と乱数を含む."""
    params = {
        "siteId": SITE_ID,
        "q": query,
        "resultsPerPage": str(per_page),
        "use_cache": "false",
        "timestamp": str(int(time.time() * 1000)),
        "r": _random_token(8),
    }
    if page > 1:
        params["page"] = str(page)
    return params


def fetch_search_page(
    query: str,
    page: int = 1,
    query_index: int = 0,
    max_retries: int = MAX_RETRIES,
    per_page: int = RESULTS_PER_PAGE,
) -> tuple[int, dict]:
    """検索 API を呼び出す（リトライ付き）.

    HTTP エラーと 0 件応答はバックオフなしで次の試行へ。通信エラーや
    JSON オブジェクトでない応答は attempt * 5 秒待ってから次の試行へ。

    Args:
        query: 検索クエリ
        page: ページ番号（1始まり）
        query_index: ヘッダーローテーション用のクエリ番号
        max_retries: 最大試行回数
        per_page: 1 ページあたりの件数 (resultsPerPage)

    Returns:
        (HTTP ステータス, レスポンス JSON)。results は 1 件以上。

    Raises:
        SearchAPIError: 全試行が失敗したとき
    """
    url = f"{SEARCH_API_BASE_URL}{SEARCH_API_PATH}"
    last_error = ""

    for attempt in range(1, max_retries + 1):
        logger.info("試行 %d/%d: query=%s, page=%d", attempt, max_retries, query, page)

        delay = (
            ATTEMPT_DELAY_BASE
            + (attempt - 1) * ATTEMPT_DELAY_STEP
            + random.uniform(0, ATTEMPT_DELAY_JITTER)
        )
        time.sleep(delay)

        timeout = REQUEST_TIMEOUT_BASE + (attempt - 1) * REQUEST_TIMEOUT_STEP
        try:
            resp = requests.get(
                url,
                params=build_params(query, page, per_page),
                headers=generate_headers(query_index + attempt),
                timeout=timeout,
            )
            if resp.status_code != 200:
                last_error = f"HTTP {resp.status_code}"
                logger.warning("試行 %d: %s", attempt, last_error)
                continue

            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected response body: {type(data).__name__}")
            if data.get("results"):
                logger.info("試行 %d 成功: %d 件", attempt, len(data["results"]))
                return resp.status_code, data
            # 200 でも 0 件はレート制限とみなしてリトライ
            last_error = "API returned 200 but zero products"
            logger.warning("試行 %d: 0 件応答 (レート制限の可能性)", attempt)
        except (requests.RequestException, ValueError) as e:
            last_error = str(e)
            logger.warning("試行 %d 失敗: %s", attempt, e)
            if attempt < max_retries:
                backoff = attempt * RETRY_BACKOFF_STEP
                logger.info("%.0f 秒待機してリトライ", backoff)
                time.sleep(backoff)

    raise SearchAPIError(
        f"Failed to get valid response after {max_retries} attempts "
        f"for query \"{query}\": {last_error}"
    )


def parse_results(
    data: dict, page: int = 1, page_size: int = RESULTS_PER_PAGE, paginated: bool = False
) -> list[ActualEntry]:
    """レスポンス JSON から商品リストを抽出する.

    paginated のときはページ番号と通し順位を付ける。
    """
    results: list[ActualEntry] = []
    for i, item in enumerate(data.get("results") or []):
        if not isinstance(item, dict):
            continue
        results.append(ActualEntry(
            name=str(item.get("name") or ""),
            sku=str(item.get("sku") or ""),
            position=i + 1,
            page_number=page if paginated else None,
            absolute_position=(page - 1) * page_size + i + 1 if paginated else None,
        ))
    return results


def _deep_get(d: dict, *keys: str):
    """ネストされた dict から安全に値を取得する."""
    for key in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def _to_int(value) -> int | None:
    """ページ情報の数値を int に変換する. 変換できなければ None."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def fetch_all_pages(
    query: str,
    max_pages: int = 1,
    query_index: int = 0,
    page_size: int = RESULTS_PER_PAGE,
) -> SearchResponse:
    """最大 max_pages ページまで取得して結合する.

    1ページ目の失敗は SearchAPIError を送出。2ページ目以降の失敗は
    取得済みのページまでで打ち切る。
    """
    paginated = max_pages > 1
    response = SearchResponse()

    for page in range(1, max_pages + 1):
        try:
            status, data = fetch_search_page(
                query, page=page, query_index=query_index, per_page=page_size
            )
        except SearchAPIError as e:
            if page == 1:
                raise
            logger.warning("ページ %d 取得失敗、%d ページで打ち切り: %s", page, page - 1, e)
            break

        products = parse_results(data, page=page, page_size=page_size, paginated=paginated)
        response.products.extend(products)
        response.pages_fetched = page
        if page == 1:
            response.status_code = status
            response.total_results = _to_int(_deep_get(data, "pagination", "totalResults")) or 0
            logger.info(
                "ページ情報: totalResults=%s, totalPages=%s, perPage=%s",
                _deep_get(data, "pagination", "totalResults"),
                _deep_get(data, "pagination", "totalPages"),
                _deep_get(data, "pagination", "perPage"),
            )

        total_pages = _to_int(_deep_get(data, "pagination", "totalPages"))
        if len(products) < page_size or (total_pages and page >= total_pages):
            break

    return response


def wait_between_queries(index: int) -> float:
    """クエリ間の待機. 5 クエリごとに追加で待つ.

    Returns:
        実際に待機した秒数
    """
    base = QUERY_INTERVAL_BASE
    if (index + 1) % QUERY_BURST_SIZE == 0:
        base += QUERY_BURST_EXTRA
        logger.info("バースト保護: %.0f 秒待機", base)

    variation = (random.random() - 0.5) * QUERY_INTERVAL_JITTER
    interval = max(QUERY_INTERVAL_MIN, base + variation)
    time.sleep(interval)
    return interval
