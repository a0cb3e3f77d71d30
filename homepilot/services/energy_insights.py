"""
Energy insight provider - consumption summaries and saving suggestions.

Everything here is derived from data the State Synchronizer already keeps:
the entity mirror (which sensors measure power, what is switched on) and
the history store (numeric power readings over time). Nothing calls the hub.

Readings are bucketed per clock hour. An hour's total is the sum, across
power sensors, of each sensor's mean reading in that hour (kW converted to
W). Solar sensors are tracked separately from consumption.

Trend:
======
    daily average > weekly average × 1.1  → "increasing"
    daily average < weekly average × 0.9  → "decreasing"
    otherwise                             → "stable"
    no readings in the last 24 h          → "insufficient_data"

Usage:
======
    service = EnergyInsightService(mirror, history, pattern_store)
    insights = service.get_insights()
    suggestions = service.get_suggestions()
    service.store_analysis()   # energy_analysis:latest_analysis pattern
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional

from homepilot.models.entity import EntityRecord
from homepilot.models.learned_pattern import LearnedPattern, LearningSource, PatternType
from homepilot.services.entity_mirror import EntityMirror, HistoryStore
from homepilot.services.pattern_store import PatternStore

logger = logging.getLogger("homepilot.services.energy")

POWER_UNITS = {"w": 1.0, "kw": 1000.0}
SOLAR_MARKERS = ("solar", "pv")
NIGHT_HOURS = {23, 0, 1, 2, 3, 4, 5}
NIGHT_POWER_THRESHOLD_W = 100.0
PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

# kWh price used for rough savings estimates
DEFAULT_PRICE_PER_KWH = 0.15

LATEST_ANALYSIS_KEY = "latest_analysis"
ANALYSIS_CONFIDENCE = 0.8


@dataclass
class EnergyInsights:
    """Consumption summary for the prompt and the HTTP layer."""
    daily_average: float = 0.0
    weekly_average: float = 0.0
    trend: str = "insufficient_data"
    solar_production: float = 0.0
    total_samples: int = 0
    peak_hour: Optional[int] = None
    peak_power: float = 0.0
    night_average: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.trend != "insufficient_data"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EnergySuggestion:
    """
    One saving suggestion.

    `type` doubles as the feedback key: a thumbs-down on a type hides
    every future suggestion of that type.
    """
    type: str
    priority: str
    title: str
    description: str
    estimated_savings: float = 0.0
    entity_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _power_factor(entity: EntityRecord) -> Optional[float]:
    """Multiplier to watts, or None when the entity is not a power sensor."""
    unit = (entity.unit_of_measurement or "").strip().lower()
    if unit in POWER_UNITS:
        return POWER_UNITS[unit]
    if entity.device_class == "power":
        return 1.0
    return None


def _is_solar(entity_id: str) -> bool:
    lowered = entity_id.lower()
    return any(marker in lowered for marker in SOLAR_MARKERS)


class EnergyInsightService:
    """Energy summaries and suggestions over the mirror and history store."""

    def __init__(
        self,
        mirror: EntityMirror,
        history: HistoryStore,
        patterns: PatternStore,
        tz: tzinfo = timezone.utc,
        price_per_kwh: float = DEFAULT_PRICE_PER_KWH,
    ):
        self.mirror = mirror
        self.history = history
        self.patterns = patterns
        self.tz = tz
        self.price_per_kwh = price_per_kwh

    # -------------------------------------------------------------------------
    # HOURLY BUCKETS
    # -------------------------------------------------------------------------

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz)

    def _hourly_totals(self, since: datetime) -> Dict[str, Dict[datetime, float]]:
        """
        Hourly watt totals since `since`, split into consumption and solar.

        Returns:
            {"consumption": {hour_start: watts}, "solar": {hour_start: watts}}
        """
        sensors = {}
        for entity in self.mirror.get_entities():
            factor = _power_factor(entity)
            if factor is not None:
                sensors[entity.entity_id] = factor

        totals: Dict[str, Dict[datetime, float]] = {"consumption": {}, "solar": {}}
        if not sensors:
            return totals

        points = self.history.get_entity_history(
            entity_ids=list(sensors), start_time=since, limit=100_000
        )

        # (kind, hour) -> entity_id -> readings
        buckets: Dict[tuple, Dict[str, List[float]]] = defaultdict(lambda: defaultdict(list))
        for point in points:
            if point.state_numeric is None:
                continue
            hour = self._localize(point.recorded_at).replace(minute=0, second=0, microsecond=0)
            kind = "solar" if _is_solar(point.entity_id) else "consumption"
            buckets[(kind, hour)][point.entity_id].append(
                point.state_numeric * sensors[point.entity_id]
            )

        for (kind, hour), readings in buckets.items():
            totals[kind][hour] = sum(sum(v) / len(v) for v in readings.values())
        return totals

    # -------------------------------------------------------------------------
    # INSIGHTS
    # -------------------------------------------------------------------------

    def get_insights(self, now: Optional[datetime] = None) -> EnergyInsights:
        now = now or datetime.now(timezone.utc)
        day_ago = self._localize(now - timedelta(days=1))

        totals = self._hourly_totals(now - timedelta(days=7))
        weekly = totals["consumption"]
        daily = {hour: watts for hour, watts in weekly.items() if hour >= day_ago}

        if not daily:
            return EnergyInsights(total_samples=len(weekly))

        daily_avg = sum(daily.values()) / len(daily)
        weekly_avg = sum(weekly.values()) / len(weekly)

        if daily_avg > weekly_avg * 1.1:
            trend = "increasing"
        elif daily_avg < weekly_avg * 0.9:
            trend = "decreasing"
        else:
            trend = "stable"

        solar_daily = [w for hour, w in totals["solar"].items() if hour >= day_ago]
        solar = sum(solar_daily) / len(solar_daily) if solar_daily else 0.0

        by_hour_of_day: Dict[int, List[float]] = defaultdict(list)
        for hour, watts in weekly.items():
            by_hour_of_day[hour.hour].append(watts)
        hour_means = {h: sum(v) / len(v) for h, v in by_hour_of_day.items()}
        peak_hour = max(hour_means, key=hour_means.get)

        night = [w for hour, w in daily.items() if hour.hour in NIGHT_HOURS]

        return EnergyInsights(
            daily_average=daily_avg,
            weekly_average=weekly_avg,
            trend=trend,
            solar_production=solar,
            total_samples=len(daily),
            peak_hour=peak_hour,
            peak_power=hour_means[peak_hour],
            night_average=sum(night) / len(night) if night else None,
        )

    # -------------------------------------------------------------------------
    # SUGGESTIONS
    # -------------------------------------------------------------------------

    def _always_on_devices(self, now: datetime) -> List[str]:
        """Lights and switches that have been on for more than a day."""
        cutoff = now - timedelta(days=1)
        devices = []
        for entity in self.mirror.get_entities():
            if entity.domain not in ("light", "switch") or entity.state != "on":
                continue
            if entity.last_changed is None:
                continue
            changed = entity.last_changed
            if changed.tzinfo is None:
                changed = changed.replace(tzinfo=timezone.utc)
            if changed < cutoff:
                devices.append(entity.entity_id)
        return devices

    def get_suggestions(
        self,
        scope: Optional[str] = None,
        insights: Optional[EnergyInsights] = None,
        now: Optional[datetime] = None,
    ) -> List[EnergySuggestion]:
        """Suggestions ordered by priority, minus any type the user rated down."""
        now = now or datetime.now(timezone.utc)
        insights = insights or self.get_insights(now=now)

        suggestions = []

        if not insights.has_data:
            suggestions.append(EnergySuggestion(
                type="efficiency",
                priority="medium",
                title="Start Energy Monitoring",
                description=(
                    "I need more data to provide personalized energy saving suggestions. "
                    "Let me monitor your usage for 24 hours."
                ),
            ))
            return self._without_disliked(suggestions, scope)

        if insights.night_average is not None and insights.night_average > NIGHT_POWER_THRESHOLD_W:
            suggestions.append(EnergySuggestion(
                type="cost_saving",
                priority="high",
                title="High Nighttime Energy Usage Detected",
                description=(
                    f"You're using an average of {insights.night_average:.0f}W during late night "
                    "hours (11 PM - 5 AM). Consider turning off unnecessary devices."
                ),
                estimated_savings=insights.night_average * 6 * 30 * self.price_per_kwh / 1000,
            ))

        always_on = self._always_on_devices(now)
        if always_on:
            suggestions.append(EnergySuggestion(
                type="device_optimization",
                priority="medium",
                title="Devices Running Continuously",
                description=(
                    f"{len(always_on)} devices have been on for over a day. Consider an "
                    "automation to turn them off when not needed."
                ),
                estimated_savings=len(always_on) * 10 * 24 * 30 * self.price_per_kwh / 1000,
                entity_ids=always_on,
            ))

        if insights.peak_hour is not None:
            suggestions.append(EnergySuggestion(
                type="timing",
                priority="medium",
                title="Peak Usage Time Identified",
                description=(
                    f"Your highest energy usage is at {insights.peak_hour}:00 "
                    f"({insights.peak_power:.0f}W average). Consider shifting some activities "
                    "to off-peak hours to save on electricity costs."
                ),
                estimated_savings=insights.peak_power * 0.3 * 30 * self.price_per_kwh / 1000,
            ))

        if insights.trend == "increasing":
            suggestions.append(EnergySuggestion(
                type="efficiency",
                priority="low",
                title="Energy Usage Rising",
                description=(
                    f"Today's average of {insights.daily_average:.0f}W is above your weekly "
                    f"average of {insights.weekly_average:.0f}W."
                ),
            ))

        return self._without_disliked(suggestions, scope)

    def _without_disliked(self, suggestions: List[EnergySuggestion], scope: Optional[str]) -> List[EnergySuggestion]:
        disliked = set(self.patterns.disliked_keys(scope))
        filtered = [s for s in suggestions if s.type not in disliked]
        filtered.sort(key=lambda s: PRIORITY_ORDER.get(s.priority, 0), reverse=True)
        return filtered

    def record_suggestion_feedback(self, suggestion_type: str, rating: str, scope: Optional[str] = None):
        """Thumbs up/down on a suggestion type."""
        return self.patterns.record_feedback(
            scope,
            PatternType.SUGGESTION_FEEDBACK,
            suggestion_type,
            rating,
            pattern_value={"rating": rating, "timestamp": datetime.now(timezone.utc).isoformat()},
        )

    # -------------------------------------------------------------------------
    # STORED ANALYSIS
    # -------------------------------------------------------------------------

    def store_analysis(self, scope: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Compute insights plus the always-on devices and keep them as the
        `energy_analysis:latest_analysis` pattern, replacing the previous one.

        Raises:
            PersistenceError: the pattern could not be written
        """
        now = now or datetime.now(timezone.utc)
        analysis = {
            "timestamp": now.isoformat(),
            **self.get_insights(now=now).to_dict(),
            "always_on_devices": self._always_on_devices(now),
        }
        self.patterns.replace(
            scope,
            PatternType.ENERGY_ANALYSIS,
            LATEST_ANALYSIS_KEY,
            analysis,
            ANALYSIS_CONFIDENCE,
            source=LearningSource.PATTERN_DETECTION,
            count_use=False,
        )
        logger.info(f"Stored energy analysis (trend {analysis['trend']})")
        return analysis

    def latest_analysis(self, scope: Optional[str] = None) -> Optional[LearnedPattern]:
        return self.patterns.get(scope, PatternType.ENERGY_ANALYSIS, LATEST_ANALYSIS_KEY)
