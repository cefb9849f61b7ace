"""Metrics snapshots and reports produced by the metrics collector.

All report types carry dataclasses_json so the maintenance tooling can dump them as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, dataclass_json

__all__: list[str] = [
    "DetailedStats",
    "I18nMetrics",
    "LoadTimePercentiles",
    "LocaleDistribution",
    "PerformanceReport",
]


@dataclass_json
@dataclass
class I18nMetrics(DataClassJsonMixin):
    """Running metrics of the translation pipeline.

    Attributes:
        load_time (float): Average catalog load time in milliseconds over the sample window.
        cache_hit_rate (float): hits / (hits + misses).
        error_rate (float): errors / (hits + misses).
        translation_coverage (float): Last reported coverage ratio, 0.0 to 1.0.
        locale_usage (dict[str, int]): Number of catalog requests per locale.
    """

    load_time: float = 0.0
    cache_hit_rate: float = 0.0
    error_rate: float = 0.0
    translation_coverage: float = 0.0
    locale_usage: dict[str, int] = field(default_factory=dict)


@dataclass_json
@dataclass
class LoadTimePercentiles(DataClassJsonMixin):
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass_json
@dataclass
class LocaleDistribution(DataClassJsonMixin):
    locale: str
    count: int
    percentage: float


@dataclass_json
@dataclass
class DetailedStats(DataClassJsonMixin):
    uptime: int = 0
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    hit_rate: float = 0.0
    error_rate: float = 0.0
    requests_per_minute: float = 0.0
    average_load_time: float = 0.0
    load_time_percentiles: LoadTimePercentiles = field(default_factory=LoadTimePercentiles)
    locale_distribution: list[LocaleDistribution] = field(default_factory=list)
    translation_coverage: float = 0.0
    performance_grade: str = "F"


@dataclass_json
@dataclass
class PerformanceReport(DataClassJsonMixin):
    """Human-facing health report.

    ``summary``, ``performance`` and ``usage`` are plain dictionaries so the report can be
    extended without schema changes on the consumer side.
    """

    summary: dict[str, float | int | str] = field(default_factory=dict)
    performance: dict[str, object] = field(default_factory=dict)
    usage: dict[str, object] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)
