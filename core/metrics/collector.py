"""Metrics collection for the translation catalog pipeline.

Records cache hits and misses, catalog load times, load errors and per-locale usage, and derives
hit/error rates, load-time percentiles and an overall letter grade. Every record call also
publishes a CacheEvent so dashboards and debug listeners can follow the pipeline live.
"""

from __future__ import annotations

import math
from collections import deque
from typing import TYPE_CHECKING, ClassVar, Final

from core.metrics.events import CacheEventBus
from models.cache_models import CacheEventType
from models.metrics_models import (
    DetailedStats,
    I18nMetrics,
    LoadTimePercentiles,
    LocaleDistribution,
    PerformanceReport,
)
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable

__all__: list[str] = ["MetricsCollector", "format_metrics"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_LOAD_TIME_SAMPLES: Final[int] = 100
MINUTE_MS: Final[int] = 60_000


class MetricsCollector:
    """Process-lifetime metrics for catalog loading and caching.

    Counters only grow until reset() is called. Load times are kept in a sliding window
    (100 samples by default) so the average and percentiles follow recent behavior.

    Attributes:
        HIT_RATE_SCORES (ClassVar[list[tuple[float, int]]]): (minimum hit rate, points).
        ERROR_RATE_SCORES (ClassVar[list[tuple[float, int]]]): (maximum error rate, points).
        LOAD_TIME_SCORES (ClassVar[list[tuple[float, int]]]): (maximum average load time in ms, points).
        GRADE_THRESHOLDS (ClassVar[list[tuple[int, str]]]): (minimum total points, grade).
        LOW_HIT_RATE (ClassVar[float]): Hit rate below which the report recommends action.
        HIGH_ERROR_RATE (ClassVar[float]): Error rate above which the report recommends action.
        SLOW_LOAD_TIME_MS (ClassVar[float]): Average load time above which the report recommends action.
    """

    HIT_RATE_SCORES: ClassVar[list[tuple[float, int]]] = [(0.9, 40), (0.8, 30), (0.6, 20), (0.4, 10)]
    ERROR_RATE_SCORES: ClassVar[list[tuple[float, int]]] = [(0.01, 30), (0.05, 20), (0.1, 10)]
    LOAD_TIME_SCORES: ClassVar[list[tuple[float, int]]] = [(50.0, 30), (100.0, 20), (200.0, 10)]
    GRADE_THRESHOLDS: ClassVar[list[tuple[int, str]]] = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

    LOW_HIT_RATE: ClassVar[float] = 0.8
    HIGH_ERROR_RATE: ClassVar[float] = 0.05
    SLOW_LOAD_TIME_MS: ClassVar[float] = 100.0

    def __init__(
        self,
        locales: Iterable[str] = ("en", "zh"),
        *,
        load_time_samples: int = DEFAULT_LOAD_TIME_SAMPLES,
        events: CacheEventBus | None = None,
    ) -> None:
        """Create a collector.

        Args:
            locales (Iterable[str]): Locales reported with a zero count before any usage is recorded.
            load_time_samples (int): Size of the load-time sliding window.
            events (CacheEventBus | None): Bus to publish on; a private one is created when omitted.
        """
        self._known_locales: tuple[str, ...] = tuple(locales)
        self._load_time_samples: int = load_time_samples
        self.events: CacheEventBus = events if events is not None else CacheEventBus()
        self._reset_state()

    def _reset_state(self) -> None:
        self._total_requests: int = 0
        self._cache_hits: int = 0
        self._errors: int = 0
        self._load_times: deque[float] = deque(maxlen=self._load_time_samples)
        self._metrics: I18nMetrics = I18nMetrics(locale_usage=dict.fromkeys(self._known_locales, 0))
        self._start_time: int = TimeUtils.now_ms()

    def record_load_time(self, load_time: float) -> None:
        if not math.isfinite(load_time):
            logger.warning("Ignoring non-finite load time: %s", load_time)
            return
        self._load_times.append(float(load_time))
        self._metrics.load_time = sum(self._load_times) / len(self._load_times)
        self.events.emit(
            CacheEventType.PRELOAD_COMPLETE,
            metadata={"load_time": load_time, "average_load_time": self._metrics.load_time},
        )

    def record_cache_hit(self) -> None:
        self._cache_hits += 1
        self._total_requests += 1
        self._update_rates()
        self.events.emit(
            CacheEventType.HIT,
            metadata={
                "total_hits": self._cache_hits,
                "total_requests": self._total_requests,
                "hit_rate": self._metrics.cache_hit_rate,
            },
        )

    def record_cache_miss(self) -> None:
        self._total_requests += 1
        self._update_rates()
        self.events.emit(
            CacheEventType.MISS,
            metadata={"total_requests": self._total_requests, "hit_rate": self._metrics.cache_hit_rate},
        )

    def record_error(self) -> None:
        """Count a failed catalog load; the error rate is errors per cache request."""
        self._errors += 1
        self._update_rates()
        self.events.emit(
            CacheEventType.PRELOAD_ERROR,
            metadata={"total_errors": self._errors, "error_rate": self._metrics.error_rate},
        )

    def record_locale_usage(self, locale: str) -> None:
        usage: dict[str, int] = self._metrics.locale_usage
        usage[locale] = usage.get(locale, 0) + 1

    def record_translation_coverage(self, coverage: float) -> None:
        if not math.isfinite(coverage):
            logger.warning("Ignoring non-finite translation coverage: %s", coverage)
            return
        self._metrics.translation_coverage = min(max(float(coverage), 0.0), 1.0)
        self.events.emit(
            CacheEventType.SET,
            metadata={"translation_coverage": self._metrics.translation_coverage},
        )

    def _update_rates(self) -> None:
        if self._total_requests > 0:
            self._metrics.cache_hit_rate = self._cache_hits / self._total_requests
            self._metrics.error_rate = self._errors / self._total_requests
        else:
            self._metrics.cache_hit_rate = 0.0
            self._metrics.error_rate = 0.0

    def get_metrics(self) -> I18nMetrics:
        """Return a copy of the current metrics."""
        return I18nMetrics(
            load_time=self._metrics.load_time,
            cache_hit_rate=self._metrics.cache_hit_rate,
            error_rate=self._metrics.error_rate,
            translation_coverage=self._metrics.translation_coverage,
            locale_usage=dict(self._metrics.locale_usage),
        )

    def reset(self) -> None:
        self._reset_state()
        self.events.emit(CacheEventType.CLEAR, metadata={"reason": "metrics_reset"})
        logger.debug("Metrics reset")

    def get_detailed_stats(self) -> DetailedStats:
        uptime: int = max(TimeUtils.now_ms() - self._start_time, 0)
        requests_per_minute: float = self._total_requests / (uptime / MINUTE_MS) if uptime > 0 else 0.0

        return DetailedStats(
            uptime=uptime,
            total_requests=self._total_requests,
            cache_hits=self._cache_hits,
            cache_misses=self._total_requests - self._cache_hits,
            errors=self._errors,
            hit_rate=self._metrics.cache_hit_rate,
            error_rate=self._metrics.error_rate,
            requests_per_minute=requests_per_minute,
            average_load_time=self._metrics.load_time,
            load_time_percentiles=self._calculate_load_time_percentiles(),
            locale_distribution=self._locale_distribution(),
            translation_coverage=self._metrics.translation_coverage,
            performance_grade=self._calculate_performance_grade(),
        )

    def _calculate_load_time_percentiles(self) -> LoadTimePercentiles:
        """Nearest-rank percentiles: ``sorted[floor(n * p)]``, capped at the last sample."""
        if not self._load_times:
            return LoadTimePercentiles()

        samples: list[float] = sorted(self._load_times)
        last: int = len(samples) - 1

        def pick(percentile: float) -> float:
            return samples[min(math.floor(len(samples) * percentile), last)]

        return LoadTimePercentiles(p50=pick(0.5), p90=pick(0.9), p95=pick(0.95), p99=pick(0.99))

    def _locale_distribution(self) -> list[LocaleDistribution]:
        usage: dict[str, int] = self._metrics.locale_usage
        total: int = sum(usage.values())
        return [
            LocaleDistribution(
                locale=locale,
                count=count,
                percentage=(count / total) * 100 if total > 0 else 0.0,
            )
            for locale, count in usage.items()
        ]

    def _calculate_performance_grade(self) -> str:
        hit_rate: float = self._metrics.cache_hit_rate
        error_rate: float = self._metrics.error_rate
        load_time: float = self._metrics.load_time

        score: int = 0
        score += next((points for minimum, points in self.HIT_RATE_SCORES if hit_rate >= minimum), 0)
        score += next((points for maximum, points in self.ERROR_RATE_SCORES if error_rate <= maximum), 0)
        score += next((points for maximum, points in self.LOAD_TIME_SCORES if load_time <= maximum), 0)

        return next((grade for minimum, grade in self.GRADE_THRESHOLDS if score >= minimum), "F")

    def generate_performance_report(self) -> PerformanceReport:
        stats: DetailedStats = self.get_detailed_stats()

        recommendations: list[str] = []
        if stats.total_requests > 0 and stats.hit_rate < self.LOW_HIT_RATE:
            recommendations.append(
                f"Cache hit rate is low ({stats.hit_rate:.1%}); warm up the cache or raise its size/TTL."
            )
        if stats.error_rate > self.HIGH_ERROR_RATE:
            recommendations.append(
                f"Error rate is high ({stats.error_rate:.1%}); check the catalog loader and its source."
            )
        if stats.average_load_time > self.SLOW_LOAD_TIME_MS:
            recommendations.append(
                f"Average load time is high ({stats.average_load_time:.1f}ms); preload catalogs or split them."
            )

        return PerformanceReport(
            summary={
                "grade": stats.performance_grade,
                "total_requests": stats.total_requests,
                "hit_rate": stats.hit_rate,
                "error_rate": stats.error_rate,
                "average_load_time": stats.average_load_time,
                "uptime": stats.uptime,
            },
            performance={
                "cache_efficiency": {
                    "hits": stats.cache_hits,
                    "misses": stats.cache_misses,
                    "hit_rate": stats.hit_rate,
                },
                "load_time_percentiles": stats.load_time_percentiles.to_dict(),
                "requests_per_minute": stats.requests_per_minute,
                "errors": stats.errors,
            },
            usage={
                "locale_distribution": [entry.to_dict() for entry in stats.locale_distribution],
                "translation_coverage": stats.translation_coverage,
            },
            recommendations=recommendations,
        )


def format_metrics(metrics: I18nMetrics) -> str:
    """Render metrics as a short multi-line summary for consoles and logs."""
    usage: str = ", ".join(f"{locale}: {count}" for locale, count in metrics.locale_usage.items()) or "none"
    return "\n".join(
        [
            f"Cache hit rate: {metrics.cache_hit_rate * 100:.2f}%",
            f"Average load time: {metrics.load_time:.2f}ms",
            f"Error rate: {metrics.error_rate * 100:.2f}%",
            f"Translation coverage: {metrics.translation_coverage * 100:.2f}%",
            f"Locale usage: {usage}",
        ]
    )
