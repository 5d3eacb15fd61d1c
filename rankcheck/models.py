"""データモデル定義."""

from dataclasses import dataclass, field
from enum import Enum


class InvalidArgumentError(ValueError):
    """前提条件違反（空の入力リストなど）."""


class MappingStatus(str, Enum):
    """期待商品が実際の検索結果のどこにあったか."""

    EXACT_MATCH = "Exact Match"
    FOUND_ELSEWHERE = "Found at Position"
    NOT_FOUND = "Not Found"


class SlotStatus(str, Enum):
    """順位スロット単位の判定."""

    NONE = ""  # 期待なしのスロット
    EXACT_MATCH = "Exact Match"
    POSITION_MISMATCH = "Position Mismatch"
    MISSING_PRODUCT = "Missing Product"
    NO_RESPONSE = "No Response"


class MatchStatus(str, Enum):
    """CSV レポートの Position Match 列の値."""

    MATCH = "Match"
    MISMATCH = "Mismatch"
    NOT_MATCH = "Not Match"
    NO_RESPONSE = "No Response"
    NONE = ""

    @classmethod
    def parse(cls, value: str | None) -> "MatchStatus | None":
        """大文字小文字・前後空白を無視して変換する. 未知の値は None."""
        text = (value or "").strip().lower()
        for status in cls:
            if status.value.lower() == text:
                return status
        return None


@dataclass(frozen=True)
class ExpectedEntry:
    """入力 CSV の期待値 1 行."""

    query: str
    expected_name: str
    expected_sku: str  # 照合キー
    expected_position: int | None  # 1始まり


@dataclass(frozen=True)
class ActualEntry:
    """検索 API が返した 1 商品."""

    name: str
    sku: str  # 照合キー
    position: int  # ページ内の順位（1始まり）
    page_number: int | None = None  # 複数ページ取得時のみ
    absolute_position: int | None = None  # (page-1) * page_size + index + 1

    def rank_at(self, index: int) -> int:
        """リスト内 index (0始まり) にあるときの順位."""
        if self.absolute_position is not None:
            return self.absolute_position
        return index + 1


@dataclass(frozen=True)
class PositionMapping:
    """期待商品ごとの照合結果（SKU ベース）."""

    expected_name: str
    expected_sku: str
    expected_position: int | None
    actual_position: int | None
    status: MappingStatus
    page_number: int | None = None
    actual_product: ActualEntry | None = None

    @property
    def status_label(self) -> str:
        if self.status is MappingStatus.FOUND_ELSEWHERE:
            return f"Found at Position {self.actual_position}"
        return self.status.value


@dataclass(frozen=True)
class PositionDetail:
    """順位スロットごとの照合結果（位置ベース）."""

    position: int | None
    actual_name: str | None
    actual_sku: str | None
    expected_name: str | None
    expected_sku: str | None
    expected_position: int | None
    status: SlotStatus = SlotStatus.NONE


@dataclass(frozen=True)
class FoundProduct:
    """1ページ目で見つかった期待商品."""

    expected_name: str
    expected_sku: str
    actual_position: int  # 1ページ目内の順位


@dataclass(frozen=True)
class FirstPageCoverage:
    """1ページ目カバレッジ."""

    found_on_first_page: int
    total_expected: int
    found_products: tuple[FoundProduct, ...] = ()

    @property
    def percentage(self) -> float:
        if self.total_expected == 0:
            return 0.0
        return self.found_on_first_page / self.total_expected * 100

    @property
    def count_label(self) -> str:
        return f"{self.found_on_first_page} of {self.total_expected}"

    @property
    def coverage_label(self) -> str:
        return f"{self.percentage:.2f}%"


@dataclass(frozen=True)
class FlatRow:
    """CSV レポートをパースした 1 行."""

    query: str
    expected_name: str = ""
    actual_name: str = ""
    expected_sku: str = ""
    actual_sku: str = ""
    expected_pos: str = ""
    actual_pos: str = ""
    status: str = ""
    first_page_count: str = ""
    first_page_coverage: str = ""


@dataclass(frozen=True)
class ReportDetail:
    """ダッシュボードの明細 1 行."""

    expected_name: str
    actual_name: str
    expected_sku: str
    actual_sku: str
    expected_pos: str
    actual_pos: str
    status: str


@dataclass(frozen=True)
class QueryAccuracyGroup:
    """クエリ単位の集計."""

    query: str
    total_expected: int = 0
    matches: int = 0
    mismatches: int = 0
    not_match: int = 0
    first_page_count: str = ""
    first_page_coverage: str = ""
    details: tuple[ReportDetail, ...] = ()


@dataclass(frozen=True)
class FirstPageTracking:
    total_found: int = 0
    total_expected: int = 0
    average_coverage: str | int = 0


@dataclass(frozen=True)
class OverallStats:
    """全クエリの集計."""

    total_queries: int = 0
    total_products: int = 0
    total_matches: int = 0
    total_mismatches: int = 0
    average_accuracy: str | int = 0
    first_page_tracking: FirstPageTracking = field(default_factory=FirstPageTracking)


@dataclass(frozen=True)
class PresenceReport:
    """入力商品リストの存在チェック結果."""

    total_input: int
    total_found: int
    total_missing: int
    found_percentage: str | int

    @property
    def message(self) -> str:
        return (
            f"Found {self.total_found} out of {self.total_input} products "
            f"({self.found_percentage}%)"
        )


@dataclass
class QueryResult:
    """1 クエリの実行結果."""

    test_number: int
    query: str
    expected: list[ExpectedEntry]
    actual: list[ActualEntry] = field(default_factory=list)
    api_status: int | str | None = None
    response_time: float | None = None  # 秒
    total_results: int = 0
    mappings: list[PositionMapping] = field(default_factory=list)
    details: list[PositionDetail] = field(default_factory=list)
    coverage: FirstPageCoverage | None = None
    test_result: str = "PENDING"

    @property
    def failed(self) -> bool:
        return self.test_result.startswith("FAILED")

    @property
    def exact_matches(self) -> int:
        return sum(1 for d in self.details if d.status is SlotStatus.EXACT_MATCH)

    @property
    def comparisons(self) -> int:
        return sum(
            1
            for d in self.details
            if d.status
            in (SlotStatus.EXACT_MATCH, SlotStatus.POSITION_MISMATCH, SlotStatus.MISSING_PRODUCT)
        )
