"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- 検索 API ---
SEARCH_API_BASE_URL: str = os.environ.get(
    "SEARCH_API_BASE_URL", "https://pvaewimjnq.us-east-1.awsapprunner.com"
)
SEARCH_API_PATH = "/api/v1/search.json"
SITE_ID: str = os.environ.get("SEARCH_SITE_ID", "os7898")

# --- ページング ---
RESULTS_PER_PAGE = int(os.environ.get("RESULTS_PER_PAGE", "24"))
# 1 = 1ページ目のみ取得
MAX_PAGES = int(os.environ.get("MAX_PAGES", "1"))

# --- User-Agent (クエリごとにローテーション) ---
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:120.0) Gecko/20100101 Firefox/120.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]

# --- リトライ設定 ---
MAX_RETRIES = int(os.environ.get("MAX_RETRIES", "3"))
REQUEST_TIMEOUT_BASE = 45.0  # 秒
REQUEST_TIMEOUT_STEP = 15.0  # 試行ごとに加算
ATTEMPT_DELAY_BASE = 2.0  # 秒
ATTEMPT_DELAY_STEP = 1.0
ATTEMPT_DELAY_JITTER = 6.0
RETRY_BACKOFF_STEP = 5.0  # attempt * 5 秒

# --- クエリ間隔 ---
QUERY_INTERVAL_BASE = 12.0  # 秒
QUERY_BURST_SIZE = 5
QUERY_BURST_EXTRA = 15.0
QUERY_INTERVAL_JITTER = 10.0  # ±5 秒
QUERY_INTERVAL_MIN = 8.0

# --- 入出力 ---
INPUT_CSV = Path(os.environ.get("INPUT_CSV", _PROJECT_ROOT / "API TEST INPUT.csv"))
OUTPUT_DIR = Path(os.environ.get("OUTPUT_DIR", _PROJECT_ROOT / "Output Reports"))

# --- ログ ---
LOG_DIR = _PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)
