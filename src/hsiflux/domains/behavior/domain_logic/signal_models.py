"""Behavioral session and signal models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class BehaviorEventType(str, Enum):
    SCROLL = "scroll"
    TAP = "tap"
    SWIPE = "swipe"
    NOTIFICATION = "notification"
    CALL = "call"
    TYPING = "typing"
    APP_SWITCH = "app_switch"


# Events that break an engagement segment
INTERRUPTION_TYPES = frozenset({
    BehaviorEventType.NOTIFICATION,
    BehaviorEventType.CALL,
    BehaviorEventType.APP_SWITCH,
})


class BehaviorQualityFlag(str, Enum):
    SHORT_SESSION = "short_session"
    LOW_EVENT_COUNT = "low_event_count"
    HIGH_IDLE_RATIO = "high_idle_ratio"
    LOW_EVENT_DIVERSITY = "low_event_diversity"
    SESSION_GAPS = "session_gaps"


# ---------------------------------------------------------------------------
# Raw session
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BehaviorEvent:
    """One interaction event. Only the payload fields the pipeline reads are kept."""

    timestamp: datetime
    event_type: BehaviorEventType
    direction_reversal: bool = False        # scroll
    typing_duration_sec: float | None = None  # typing
    interruption_action: str | None = None  # notification / call


@dataclass(frozen=True)
class BehaviorSession:
    session_id: str
    device_id: str
    start_time: datetime
    end_time: datetime
    events: tuple[BehaviorEvent, ...] = ()
    timezone: str = "UTC"


# ---------------------------------------------------------------------------
# Canonical session signals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IdleSegment:
    start: datetime
    end: datetime
    duration_sec: float


@dataclass(frozen=True)
class EngagementSegment:
    start: datetime
    end: datetime
    duration_sec: float
    event_count: int


@dataclass(frozen=True)
class CanonicalBehaviorSignals:
    """One session reduced to counts, gaps and segments. Immutable once built."""

    session_id: str
    device_id: str
    timezone: str
    start_time: datetime
    end_time: datetime
    duration_sec: float
    total_events: int = 0
    scroll_events: int = 0
    tap_events: int = 0
    swipe_events: int = 0
    notification_events: int = 0
    call_events: int = 0
    typing_events: int = 0
    app_switch_events: int = 0
    scroll_direction_reversals: int = 0
    total_typing_duration_sec: float = 0.0
    idle_segments: tuple[IdleSegment, ...] = ()
    total_idle_time_sec: float = 0.0
    engagement_segments: tuple[EngagementSegment, ...] = ()
    inter_event_gaps: tuple[float, ...] = ()


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

@dataclass
class NormalizedBehaviorSignals:
    canonical: CanonicalBehaviorSignals
    events_per_min: float = 0.0
    scrolls_per_min: float = 0.0
    taps_per_min: float = 0.0
    swipes_per_min: float = 0.0
    notifications_per_min: float = 0.0
    app_switches_per_min: float = 0.0
    coverage: float = 0.0
    quality_flags: list[BehaviorQualityFlag] = field(default_factory=list)


@dataclass
class DerivedBehaviorSignals:
    normalized: NormalizedBehaviorSignals
    task_switch_rate: float
    notification_load: float
    idle_ratio: float
    fragmented_idle_ratio: float
    scroll_jitter_rate: float
    burstiness: float
    deep_focus_blocks: int
    interaction_intensity: float
    distraction_score: float
    focus_hint: float


@dataclass
class BehaviorBaselines:
    distraction_baseline: float | None = None
    focus_baseline: float | None = None
    burstiness_baseline: float | None = None
    intensity_baseline: float | None = None
    sessions_in_baseline: int = 0


@dataclass
class ContextualBehaviorSignals:
    derived: DerivedBehaviorSignals
    baselines: BehaviorBaselines
    distraction_deviation_pct: float | None = None
    focus_deviation_pct: float | None = None
