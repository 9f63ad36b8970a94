from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class FreezeBalanceResponse(BaseModel):
    manual: int = Field(ge=0)
    auto: int = Field(ge=0)
    max: int = Field(ge=0)
    can_accumulate: bool


class RemainingFreezesResponse(BaseModel):
    manual: int = Field(ge=0)
    auto: int = Field(ge=0)


class StreakCheckResponse(BaseModel):
    state: Literal["active", "at_risk", "broken"]
    missed_days: int = Field(ge=0)
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    last_checkin: date | None = None
    today: date
    freezes: FreezeBalanceResponse
    recommended_freeze_type: Literal["auto", "manual"] | None = None


class CheckinRequest(BaseModel):
    timezone: str | None = Field(default=None, max_length=64)


class CheckinResponse(BaseModel):
    counted: bool
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    last_checkin: date
    freeze_applied: Literal["auto", "manual"] | None = None
    freeze_days_covered: int = Field(ge=0)
    milestones: list[int]
    streak_restarted: bool
    freezes: FreezeBalanceResponse


class FreezeUseRequest(BaseModel):
    freeze_type: Literal["auto", "manual"]
    missed_days: int = Field(ge=0, le=3650)
    timezone: str | None = Field(default=None, max_length=64)


class FreezeUseResponse(BaseModel):
    success: bool
    freeze_type: Literal["auto", "manual"] | None = None
    missed_days: int = Field(ge=0)
    remaining: RemainingFreezesResponse
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    last_checkin: date | None = None


class StreakResetResponse(BaseModel):
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    previous_streak: int = Field(ge=0)


class FreezeGrantRequest(BaseModel):
    freeze_type: Literal["auto", "manual"]
    amount: int = Field(ge=1, le=50)
    idempotency_key: str = Field(min_length=1, max_length=96)


class FreezeGrantResponse(BaseModel):
    freeze_type: Literal["auto", "manual"]
    requested: int = Field(ge=1)
    credited: int = Field(ge=0)
    discarded: int = Field(ge=0)
    idempotent_replay: bool
    freezes: FreezeBalanceResponse


class FreezeCapacityRequest(BaseModel):
    max_manual: int = Field(ge=0, le=99)


class FreezeHistoryEntryResponse(BaseModel):
    freeze_type: Literal["auto", "manual"]
    direction: Literal["CREDIT", "DEBIT"]
    amount: int = Field(ge=0)
    days_covered: int | None = None
    resulting_streak: int = Field(ge=0)
    balance_after: int = Field(ge=0)
    source: str
    created_at: datetime


class FreezeHistoryResponse(BaseModel):
    user_id: int
    items: list[FreezeHistoryEntryResponse]
