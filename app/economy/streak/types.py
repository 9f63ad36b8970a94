from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class StreakStatus(str, Enum):
    ACTIVE = "active"
    AT_RISK = "at_risk"
    BROKEN = "broken"


class FreezeType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class StreakErrorCode(str, Enum):
    RECORD_NOT_FOUND = "E_STREAK_NOT_FOUND"
    INSUFFICIENT_CREDITS = "E_INSUFFICIENT_FREEZES"
    GAP_TOO_LARGE = "E_GAP_TOO_LARGE"
    CONCURRENCY_CONFLICT = "E_CONCURRENCY_CONFLICT"
    INVALID_INPUT = "E_INVALID_INPUT"
    DECISION_REQUIRED = "E_DECISION_REQUIRED"


@dataclass(frozen=True, slots=True)
class FreezeBalance:
    manual: int
    auto: int
    max_manual: int

    @property
    def can_accumulate(self) -> bool:
        return self.manual < self.max_manual

    def available(self, freeze_type: FreezeType) -> int:
        return self.auto if freeze_type == FreezeType.AUTO else self.manual


@dataclass(frozen=True, slots=True)
class StreakSnapshot:
    user_id: int
    last_checkin_local_date: date | None
    current_streak: int
    longest_streak: int
    freezes: FreezeBalance
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class StreakEvaluation:
    status: StreakStatus
    missed_days: int
    gap_days: int | None


@dataclass(frozen=True, slots=True)
class FreezeSelection:
    freeze_type: FreezeType
    amount: int
    missed_days: int


@dataclass(frozen=True, slots=True)
class StreakFailure:
    code: StreakErrorCode
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class StreakCheckResult:
    status: StreakStatus
    missed_days: int
    current_streak: int
    longest_streak: int
    last_checkin_local_date: date | None
    freezes: FreezeBalance
    recommended_freeze_type: FreezeType | None
    today: date


@dataclass(frozen=True, slots=True)
class CheckinResult:
    counted: bool
    current_streak: int
    longest_streak: int
    last_checkin_local_date: date
    freeze_applied: FreezeSelection | None
    freezes: FreezeBalance
    milestones_reached: tuple[int, ...] = field(default_factory=tuple)
    streak_restarted: bool = False


@dataclass(frozen=True, slots=True)
class FreezeApplyResult:
    applied: FreezeSelection | None
    missed_days: int
    current_streak: int
    longest_streak: int
    last_checkin_local_date: date | None
    remaining: FreezeBalance


@dataclass(frozen=True, slots=True)
class StreakResetResult:
    current_streak: int
    longest_streak: int
    previous_streak: int


@dataclass(frozen=True, slots=True)
class FreezeGrantResult:
    freeze_type: FreezeType
    requested: int
    credited: int
    discarded: int
    idempotent_replay: bool
    freezes: FreezeBalance


@dataclass(frozen=True, slots=True)
class FreezeHistoryEntry:
    freeze_type: FreezeType
    direction: str
    amount: int
    days_covered: int | None
    resulting_streak: int
    balance_after: int
    source: str
    created_at: datetime
