"""HTML ダッシュボード（Chart.js・フィルター・明細ドリルダウン）の生成.

CSV レポートをパース・集計し、単体で開ける HTML を出力する。
"""

from __future__ import annotations

import html as html_mod
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

from rankcheck.aggregate import (
    BANDS,
    accuracy,
    accuracy_class,
    group_by_query,
    overall_stats,
    to_interchange,
)
from rankcheck.config import RESULTS_PER_PAGE
from rankcheck.models import MatchStatus, OverallStats, QueryAccuracyGroup, ReportDetail
from rankcheck.report_csv import parse_report_csv

logger = logging.getLogger(__name__)

CHART_JS_URL = "https://cdn.jsdelivr.net/npm/chart.js"

_CSS = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
       background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); min-height: 100vh; padding: 20px; }
.container { max-width: 1400px; margin: 0 auto; background: white; border-radius: 20px;
             box-shadow: 0 20px 60px rgba(0,0,0,0.3); overflow: hidden; }
.header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 40px; text-align: center; }
h1 { font-size: 2.5em; margin-bottom: 10px; }
.timestamp { opacity: 0.9; font-size: 1.1em; }
.overall-stats { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
                 gap: 20px; padding: 30px; background: #f8f9fa; }
.stat-card { background: white; padding: 20px; border-radius: 10px; text-align: center; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
.stat-value { font-size: 2.5em; font-weight: bold; color: #667eea; }
.stat-label { color: #666; margin-top: 5px; font-size: 0.9em; }
.summary-chart { padding: 30px; height: 400px; }
.filters { padding: 20px 30px; display: flex; gap: 10px; justify-content: center; flex-wrap: wrap; }
.filters input { width: 400px; padding: 12px 15px; font-size: 16px; border: 2px solid #ddd; border-radius: 8px; }
.filters select { padding: 12px 15px; font-size: 16px; border: 2px solid #ddd; border-radius: 8px; background: white; }
.filters button { padding: 12px 20px; background: #667eea; color: white; border: none; border-radius: 8px; cursor: pointer; display: none; }
#filterInfo { color: #666; font-size: 14px; text-align: center; }
.query-section { padding: 30px; border-bottom: 1px solid #e0e0e0; }
.query-section:last-child { border-bottom: none; }
.query-hidden { display: none; }
.query-header { display: flex; justify-content: space-between; align-items: center; margin-bottom: 20px; }
.query-title { color: #333; font-size: 1.5em; }
.accuracy-badge { padding: 8px 20px; border-radius: 20px; font-weight: bold; color: white; }
.accuracy-high { background: #28a745; }
.accuracy-medium { background: #ffc107; color: #333; }
.accuracy-low { background: #dc3545; }
.query-content { display: grid; grid-template-columns: 1fr 300px; gap: 30px; }
.query-stats { display: grid; grid-template-columns: repeat(3, 1fr); gap: 15px; margin-bottom: 20px; }
.query-stat { background: #f8f9fa; padding: 15px; border-radius: 8px; text-align: center; cursor: pointer; }
.query-stat.active { background: #e8eaf6; box-shadow: 0 0 0 2px #667eea; }
.query-stat-value { font-size: 1.8em; font-weight: bold; color: #333; }
.query-stat-label { color: #666; font-size: 0.85em; }
.progress-bar { height: 30px; background: #e9ecef; border-radius: 15px; overflow: hidden; }
.progress-fill { height: 100%; background: linear-gradient(90deg, #667eea, #764ba2); color: white;
                 display: flex; align-items: center; justify-content: center; font-size: 0.9em; }
.chart-container { height: 250px; }
.product-list { display: none; margin-top: 20px; }
.product-list.show { display: block; }
.product-table { width: 100%; border-collapse: collapse; margin-top: 10px; font-size: 0.9em; }
.product-table th, .product-table td { padding: 8px 10px; border-bottom: 1px solid #e0e0e0; text-align: left; }
.product-table th { background: #f8f9fa; }
.status-match { color: #28a745; font-weight: bold; }
.status-mismatch { color: #dc3545; font-weight: bold; }
.status-not-match { color: #6c757d; font-weight: bold; }
.status-no-response { color: #fd7e14; font-weight: bold; }
"""

# Python 側の aggregate.band / passes_filter と同じ判定
_SCRIPT = """
const queryData = __QUERY_DATA__;

function accuracyColor(acc, alpha) {
    if (acc >= 80) return 'rgba(75, 192, 192, ' + alpha + ')';
    if (acc >= 50) return 'rgba(255, 206, 86, ' + alpha + ')';
    return 'rgba(255, 99, 132, ' + alpha + ')';
}

function inBand(accuracy, band) {
    const parts = band.split('-').map(Number);
    if (parts[1] === 100) return accuracy >= parts[0] && accuracy <= 100;
    return accuracy >= parts[0] && accuracy < parts[1];
}

const accuracies = Object.values(queryData).map(d => parseFloat(d.accuracy));
new Chart(document.getElementById('summaryChart').getContext('2d'), {
    type: 'bar',
    data: {
        labels: Object.keys(queryData),
        datasets: [{
            label: 'Accuracy %',
            data: accuracies,
            backgroundColor: accuracies.map(a => accuracyColor(a, 0.8)),
            borderColor: accuracies.map(a => accuracyColor(a, 1)),
            borderWidth: 2
        }]
    },
    options: {
        responsive: true,
        maintainAspectRatio: false,
        scales: { y: { beginAtZero: true, max: 100, ticks: { callback: v => v + '%' } } },
        plugins: {
            legend: { display: false },
            tooltip: { callbacks: { label: c => 'Accuracy: ' + c.parsed.y.toFixed(2) + '%' } }
        }
    }
});

Object.values(queryData).forEach((data, index) => {
    new Chart(document.getElementById('chart-' + index).getContext('2d'), {
        type: 'doughnut',
        data: {
            labels: ['Matches', 'Mismatches', 'Not Match'],
            datasets: [{
                data: [data.matches, data.mismatches, data.notMatch],
                backgroundColor: ['rgba(75, 192, 192, 0.8)', 'rgba(255, 99, 132, 0.8)', 'rgba(201, 203, 207, 0.8)'],
                borderWidth: 2
            }]
        },
        options: {
            responsive: true,
            maintainAspectRatio: false,
            plugins: {
                legend: { position: 'bottom' },
                tooltip: {
                    callbacks: {
                        label: function(c) {
                            const total = c.dataset.data.reduce((a, b) => a + b, 0);
                            const pct = total ? ((c.parsed / total) * 100).toFixed(1) : '0.0';
                            return c.label + ': ' + c.parsed + ' (' + pct + '%)';
                        }
                    }
                }
            }
        }
    });
});

function applyFilters() {
    const searchTerm = document.getElementById('querySearch').value.toLowerCase().trim();
    const band = document.getElementById('accuracyFilter').value;
    const sections = document.querySelectorAll('.query-section');
    let visible = 0;

    document.getElementById('clearFiltersBtn').style.display =
        (searchTerm || band !== 'all') ? 'inline-block' : 'none';

    sections.forEach(section => {
        const query = section.getAttribute('data-query').toLowerCase();
        const accuracy = parseFloat(section.getAttribute('data-accuracy'));
        const show = (!searchTerm || query.includes(searchTerm)) &&
                     (band === 'all' || inBand(accuracy, band));
        section.classList.toggle('query-hidden', !show);
        if (show) visible++;
    });

    let info = '';
    if (searchTerm || band !== 'all') {
        info = 'Showing ' + visible + ' of ' + sections.length + ' queries';
        if (searchTerm && band !== 'all') info += ' (filtered by search and accuracy)';
        else if (searchTerm) info += ' (filtered by search)';
        else info += ' (filtered by accuracy)';
    }
    document.getElementById('filterInfo').textContent = info;
}

function clearFilters() {
    document.getElementById('querySearch').value = '';
    document.getElementById('accuracyFilter').value = 'all';
    applyFilters();
    document.getElementById('querySearch').focus();
}

document.querySelectorAll('.query-stat').forEach(card => {
    card.addEventListener('click', function() {
        const queryIndex = this.getAttribute('data-query-index');
        const listId = 'product-list-' + this.getAttribute('data-category') + '-' + queryIndex;
        const list = document.getElementById(listId);
        const wasOpen = list.classList.contains('show');

        document.querySelectorAll('[id^="product-list-"][id$="-' + queryIndex + '"]')
            .forEach(l => l.classList.remove('show'));
        document.querySelectorAll('.query-stat[data-query-index="' + queryIndex + '"]')
            .forEach(c => c.classList.remove('active'));

        if (!wasOpen) {
            list.classList.add('show');
            this.classList.add('active');
            list.scrollIntoView({ behavior: 'smooth', block: 'start' });
        }
    });
});

document.getElementById('querySearch').addEventListener('keydown', e => {
    if (e.key === 'Escape') clearFilters();
});
applyFilters();
"""


def _e(text) -> str:
    """HTML エスケープ."""
    return html_mod.escape(str(text)) if text not in (None, "") else ""


def _status_class(status: str) -> str:
    return "status-" + status.strip().lower().replace(" ", "-")


def _on_first_page(detail: ReportDetail, page_size: int) -> bool:
    try:
        position = int(detail.actual_pos)
    except ValueError:
        return False
    return 0 < position <= page_size


def _detail_table(list_id: str, title: str, details) -> str:
    rows = "".join(
        f"""
<tr>
  <td>{_e(d.expected_name) or 'N/A'}</td>
  <td>{_e(d.expected_sku) or 'N/A'}</td>
  <td>{_e(d.actual_name) or 'N/A'}</td>
  <td>{_e(d.actual_sku) or 'N/A'}</td>
  <td>{_e(d.expected_pos) or 'N/A'}</td>
  <td>{_e(d.actual_pos) or 'N/A'}</td>
  <td class="{_status_class(d.status)}">{_e(d.status)}</td>
</tr>"""
        for d in details
    )
    return f"""
<div id="{list_id}" class="product-list">
  <h3>{_e(title)}</h3>
  <table class="product-table">
    <thead><tr>
      <th>Expected Product</th><th>Expected SKU</th><th>Actual Product</th><th>Actual SKU</th>
      <th>Expected Position</th><th>Actual Position</th><th>Status</th>
    </tr></thead>
    <tbody>{rows}</tbody>
  </table>
</div>"""


def _details_with(group: QueryAccuracyGroup, status: MatchStatus) -> list[ReportDetail]:
    return [d for d in group.details if MatchStatus.parse(d.status) is status]


def build_query_section(index: int, group: QueryAccuracyGroup, page_size: int = RESULTS_PER_PAGE) -> str:
    """1 クエリ分のセクション（統計カード・グラフ・明細テーブル）."""
    acc = accuracy(group)
    stats = [
        ("expected", group.total_expected, "Expected Products"),
        ("matches", group.matches, "Position Matches"),
        ("mismatches", group.mismatches, "Position Mismatches"),
        ("notMatch", group.not_match, "Not Match"),
        ("firstPageCount", group.first_page_count or "N/A", "First Page Count"),
        ("firstPageCoverage", group.first_page_coverage or "N/A", "First Page Coverage"),
    ]
    stat_cards = "".join(
        f"""
<div class="query-stat" data-category="{category}" data-query-index="{index}">
  <div class="query-stat-value">{_e(value)}</div>
  <div class="query-stat-label">{label}</div>
</div>"""
        for category, value, label in stats
    )
    tables = "".join([
        _detail_table(f"product-list-expected-{index}", "Expected Products", group.details),
        _detail_table(
            f"product-list-matches-{index}", "Position Matches",
            _details_with(group, MatchStatus.MATCH),
        ),
        _detail_table(
            f"product-list-mismatches-{index}", "Position Mismatches",
            _details_with(group, MatchStatus.MISMATCH),
        ),
        _detail_table(
            f"product-list-notMatch-{index}", "Not Match Products",
            _details_with(group, MatchStatus.NOT_MATCH),
        ),
        _detail_table(
            f"product-list-firstPageCount-{index}",
            f"First Page Products ({group.first_page_count or 'N/A'})",
            [d for d in group.details if _on_first_page(d, page_size)],
        ),
        _detail_table(
            f"product-list-firstPageCoverage-{index}",
            f"First Page Coverage ({group.first_page_coverage or 'N/A'})",
            [d for d in group.details if _on_first_page(d, page_size)],
        ),
    ])

    return f"""
<div class="query-section" data-accuracy="{acc}" data-query="{_e(group.query)}">
  <div class="query-header">
    <h2 class="query-title">Query: &quot;{_e(group.query)}&quot;</h2>
    <div class="accuracy-badge {accuracy_class(acc)}">{acc}% Accuracy</div>
  </div>
  <div class="query-content">
    <div>
      <div class="query-stats">{stat_cards}</div>
      <div class="progress-bar">
        <div class="progress-fill" style="width: {acc}%">{acc}% Match Rate</div>
      </div>
    </div>
    <div class="chart-container"><canvas id="chart-{index}"></canvas></div>
  </div>
  {tables}
</div>"""


def build_overall_stats(stats: OverallStats) -> str:
    cards = [
        (stats.total_queries, "Total Queries"),
        (stats.total_products, "Total Expected Products"),
        (stats.total_matches, "Position Matches"),
        (stats.total_mismatches, "Position Mismatches"),
        (f"{stats.average_accuracy}%", "Overall Accuracy"),
        (f"{stats.first_page_tracking.average_coverage}%", "First Page Coverage"),
    ]
    return "".join(
        f"""
<div class="stat-card">
  <div class="stat-value">{_e(value)}</div>
  <div class="stat-label">{label}</div>
</div>"""
        for value, label in cards
    )


def render_dashboard(
    groups: Mapping[str, QueryAccuracyGroup],
    stats: OverallStats,
    generated_at: datetime | None = None,
    page_size: int = RESULTS_PER_PAGE,
) -> str:
    """ダッシュボード HTML 全体を組み立てる."""
    generated_at = generated_at or datetime.now()
    band_options = "".join(f'<option value="{b}">{b}%</option>' for b in BANDS)
    sections = "".join(
        build_query_section(i, group, page_size) for i, group in enumerate(groups.values())
    )
    # </script> でスクリプトが途切れないようにエスケープ
    query_data = json.dumps(to_interchange(groups), ensure_ascii=False).replace("</", "<\\/")

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>API Test Report with Accuracy Charts</title>
<script src="{CHART_JS_URL}"></script>
<style>{_CSS}</style>
</head>
<body>
<div class="container">
  <div class="header">
    <h1>API Test Report</h1>
    <div class="timestamp">Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}</div>
  </div>
  <div class="overall-stats">{build_overall_stats(stats)}</div>
  <div class="summary-chart"><canvas id="summaryChart"></canvas></div>
  <div class="filters">
    <input type="text" id="querySearch" placeholder="Search queries..." onkeyup="applyFilters()">
    <select id="accuracyFilter" onchange="applyFilters()">
      <option value="all">All Accuracy Levels</option>{band_options}
    </select>
    <button id="clearFiltersBtn" onclick="clearFilters()">Clear All Filters</button>
  </div>
  <div id="filterInfo"></div>
  {sections}
</div>
<script>{_SCRIPT.replace("__QUERY_DATA__", query_data)}</script>
</body>
</html>"""


def generate_html_report(
    csv_content: str, output_dir: str | Path, now: datetime | None = None
) -> Path:
    """CSV レポートから HTML ダッシュボードを生成して保存する."""
    now = now or datetime.now()
    groups = group_by_query(parse_report_csv(csv_content))
    stats = overall_stats(groups)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"API_TEST_REPORT_{now.strftime('%Y-%m-%dT%H-%M-%S')}.html"
    path.write_text(render_dashboard(groups, stats, now), encoding="utf-8")
    logger.info("HTML レポート保存: %s (クエリ %d 件)", path, len(groups))
    return path
