from __future__ import annotations

from dataclasses import replace
from datetime import datetime, tzinfo

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.streak_state import StreakState
from app.db.repo.freeze_ledger_repo import FreezeLedgerRepo
from app.db.repo.streak_repo import StreakRepo
from app.economy.streak.constants import DEFAULT_MAX_MANUAL_FREEZES
from app.economy.streak.errors import (
    InsufficientFreezeCreditsError,
    StreakConcurrencyConflictError,
    StreakDecisionRequiredError,
    StreakRecordNotFoundError,
)
from app.economy.streak.freeze import apply_freeze, is_auto_eligible, recommend_freeze_type
from app.economy.streak.ledger import (
    LEDGER_SOURCE_CHECKIN_AUTO,
    LEDGER_SOURCE_GRANT,
    LEDGER_SOURCE_USER_FREEZE,
    append_ledger_entry,
    credit,
    history_entry_from_model,
    set_manual_capacity,
)
from app.economy.streak.rewards import RewardHook, fire_milestone_rewards
from app.economy.streak.rules import day_before, evaluate_streak
from app.economy.streak.rules import record_checkin as count_checkin_day
from app.economy.streak.rules import reset_streak as reset_snapshot
from app.economy.streak.time import to_calendar_day
from app.economy.streak.types import (
    CheckinResult,
    FreezeApplyResult,
    FreezeBalance,
    FreezeGrantResult,
    FreezeHistoryEntry,
    FreezeSelection,
    FreezeType,
    StreakCheckResult,
    StreakResetResult,
    StreakSnapshot,
    StreakStatus,
)

logger = structlog.get_logger(__name__)


def _freeze_ledger_key(user_id: int, local_date_iso: str) -> str:
    # A resolved gap leaves nothing to forgive, so at most one freeze debit per user and day.
    return f"streak_freeze:{user_id}:{local_date_iso}"


def _grant_ledger_key(user_id: int, idempotency_key: str) -> str:
    return f"grant:{user_id}:{idempotency_key}"


class StreakService:
    @staticmethod
    def _snapshot_from_model(state: StreakState) -> StreakSnapshot:
        return StreakSnapshot(
            user_id=state.user_id,
            last_checkin_local_date=state.last_checkin_local_date,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            freezes=FreezeBalance(
                manual=state.manual_freezes,
                auto=state.auto_freezes,
                max_manual=state.max_manual_freezes,
            ),
            updated_at=state.updated_at,
        )

    @staticmethod
    def _apply_snapshot_to_model(state: StreakState, snapshot: StreakSnapshot, now_utc: datetime) -> None:
        state.last_checkin_local_date = snapshot.last_checkin_local_date
        state.current_streak = snapshot.current_streak
        state.longest_streak = snapshot.longest_streak
        state.manual_freezes = snapshot.freezes.manual
        state.auto_freezes = snapshot.freezes.auto
        state.max_manual_freezes = snapshot.freezes.max_manual
        state.updated_at = now_utc

    @staticmethod
    async def _persist(
        session: AsyncSession,
        state: StreakState,
        *,
        before: StreakSnapshot,
        after: StreakSnapshot,
        now_utc: datetime,
    ) -> bool:
        if after == before:
            return False
        StreakService._apply_snapshot_to_model(state, after, now_utc)
        await session.flush()
        return True

    @staticmethod
    async def _get_or_create_state(session: AsyncSession, user_id: int, now_utc: datetime) -> StreakState:
        state = await StreakRepo.get_by_user_id(session, user_id)
        if state is not None:
            return state
        return await StreakRepo.create_state(
            session,
            user_id=user_id,
            now_utc=now_utc,
            max_manual_freezes=DEFAULT_MAX_MANUAL_FREEZES,
        )

    @staticmethod
    async def _get_existing_state(session: AsyncSession, user_id: int) -> StreakState:
        state = await StreakRepo.get_by_user_id(session, user_id)
        if state is None:
            raise StreakRecordNotFoundError(f"user_id={user_id}")
        return state

    @staticmethod
    async def check_streak(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        reference_tz: tzinfo,
    ) -> StreakCheckResult:
        state = await StreakService._get_or_create_state(session, user_id, now_utc)
        today = to_calendar_day(now_utc, reference_tz)
        snapshot = StreakService._snapshot_from_model(state)
        evaluation = evaluate_streak(snapshot, today=today)

        return StreakCheckResult(
            status=evaluation.status,
            missed_days=evaluation.missed_days,
            current_streak=snapshot.current_streak,
            longest_streak=snapshot.longest_streak,
            last_checkin_local_date=snapshot.last_checkin_local_date,
            freezes=snapshot.freezes,
            recommended_freeze_type=recommend_freeze_type(evaluation, snapshot.freezes),
            today=today,
        )

    @staticmethod
    async def record_checkin(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        reference_tz: tzinfo,
        reward_hook: RewardHook,
    ) -> CheckinResult:
        """Counts a qualifying activity for today.

        A single missed day is forgiven silently when an auto freeze is
        available. Any other at-risk gap needs the user to pick between a
        manual freeze and a reset first, so nothing is written.
        """
        state = await StreakService._get_or_create_state(session, user_id, now_utc)
        today = to_calendar_day(now_utc, reference_tz)
        before = StreakService._snapshot_from_model(state)
        evaluation = evaluate_streak(before, today=today)

        working = before
        selection: FreezeSelection | None = None
        if evaluation.status == StreakStatus.AT_RISK:
            if not is_auto_eligible(evaluation, before.freezes):
                raise StreakDecisionRequiredError(f"missed_days={evaluation.missed_days}")
            working, selection = apply_freeze(before, evaluation=evaluation, through=day_before(today))

        after, counted = count_checkin_day(working, today=today)
        await StreakService._persist(session, state, before=before, after=after, now_utc=now_utc)

        if selection is not None:
            await append_ledger_entry(
                session,
                user_id=user_id,
                freeze_type=selection.freeze_type,
                direction="DEBIT",
                amount=selection.amount,
                balance_after=after.freezes.available(selection.freeze_type),
                resulting_streak=after.current_streak,
                source=LEDGER_SOURCE_CHECKIN_AUTO,
                idempotency_key=_freeze_ledger_key(user_id, today.isoformat()),
                now_utc=now_utc,
                days_covered=selection.missed_days,
            )

        milestones: tuple[int, ...] = ()
        if counted:
            milestones = await fire_milestone_rewards(
                session,
                reward_hook,
                user_id=user_id,
                previous_streak=working.current_streak,
                new_streak=after.current_streak,
                local_date=today,
                happened_at=now_utc,
            )

        restarted = counted and before.current_streak > 0 and after.current_streak == 1
        logger.info(
            "streak_checkin_recorded",
            user_id=user_id,
            counted=counted,
            current_streak=after.current_streak,
            auto_freeze_applied=selection is not None,
            streak_restarted=restarted,
            milestones=list(milestones),
        )
        return CheckinResult(
            counted=counted,
            current_streak=after.current_streak,
            longest_streak=after.longest_streak,
            last_checkin_local_date=after.last_checkin_local_date or today,
            freeze_applied=selection,
            freezes=after.freezes,
            milestones_reached=milestones,
            streak_restarted=restarted,
        )

    @staticmethod
    async def use_streak_freeze(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        reference_tz: tzinfo,
        requested_freeze_type: FreezeType,
        requested_missed_days: int,
    ) -> FreezeApplyResult:
        """Spends freezes on the current gap; the client's type and day count are advisory.

        Nothing to forgive is a no-op, unless the caller expected a gap and a
        freeze was already spent today: that request lost a race and fails.
        """
        state = await StreakService._get_existing_state(session, user_id)
        today = to_calendar_day(now_utc, reference_tz)
        before = StreakService._snapshot_from_model(state)
        evaluation = evaluate_streak(before, today=today)

        after, selection = apply_freeze(before, evaluation=evaluation, through=today)
        if selection is None:
            if requested_missed_days > 0:
                # The gap the caller saw was already forgiven today, most likely by a concurrent request.
                spent_today = await FreezeLedgerRepo.get_by_idempotency_key(
                    session,
                    _freeze_ledger_key(user_id, today.isoformat()),
                )
                if spent_today is not None:
                    raise InsufficientFreezeCreditsError(
                        f"gap already covered today by {spent_today.source} (requested={requested_missed_days})"
                    )
            logger.info(
                "streak_freeze_noop",
                user_id=user_id,
                requested_missed_days=requested_missed_days,
            )
            return FreezeApplyResult(
                applied=None,
                missed_days=0,
                current_streak=before.current_streak,
                longest_streak=before.longest_streak,
                last_checkin_local_date=before.last_checkin_local_date,
                remaining=before.freezes,
            )

        await StreakService._persist(session, state, before=before, after=after, now_utc=now_utc)
        await append_ledger_entry(
            session,
            user_id=user_id,
            freeze_type=selection.freeze_type,
            direction="DEBIT",
            amount=selection.amount,
            balance_after=after.freezes.available(selection.freeze_type),
            resulting_streak=after.current_streak,
            source=LEDGER_SOURCE_USER_FREEZE,
            idempotency_key=_freeze_ledger_key(user_id, today.isoformat()),
            now_utc=now_utc,
            days_covered=selection.missed_days,
            metadata={
                "requested_freeze_type": requested_freeze_type.value,
                "requested_missed_days": requested_missed_days,
            },
        )

        logger.info(
            "streak_freeze_applied",
            user_id=user_id,
            freeze_type=selection.freeze_type.value,
            requested_freeze_type=requested_freeze_type.value,
            missed_days=selection.missed_days,
            debited=selection.amount,
            current_streak=after.current_streak,
        )
        return FreezeApplyResult(
            applied=selection,
            missed_days=selection.missed_days,
            current_streak=after.current_streak,
            longest_streak=after.longest_streak,
            last_checkin_local_date=after.last_checkin_local_date,
            remaining=after.freezes,
        )

    @staticmethod
    async def reset_streak(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> StreakResetResult:
        state = await StreakService._get_existing_state(session, user_id)
        before = StreakService._snapshot_from_model(state)
        after = reset_snapshot(before)
        changed = await StreakService._persist(session, state, before=before, after=after, now_utc=now_utc)

        if changed:
            logger.info(
                "streak_reset",
                user_id=user_id,
                previous_streak=before.current_streak,
                longest_streak=after.longest_streak,
            )
        return StreakResetResult(
            current_streak=after.current_streak,
            longest_streak=after.longest_streak,
            previous_streak=before.current_streak,
        )

    @staticmethod
    async def grant_freezes(
        session: AsyncSession,
        *,
        user_id: int,
        freeze_type: FreezeType,
        amount: int,
        idempotency_key: str,
        now_utc: datetime,
    ) -> FreezeGrantResult:
        ledger_key = _grant_ledger_key(user_id, idempotency_key)
        state = await StreakService._get_or_create_state(session, user_id, now_utc)
        before = StreakService._snapshot_from_model(state)

        existing = await FreezeLedgerRepo.get_by_idempotency_key(session, ledger_key)
        if existing is not None:
            requested = int(existing.metadata_.get("requested", existing.amount))
            return FreezeGrantResult(
                freeze_type=FreezeType[existing.freeze_type],
                requested=requested,
                credited=existing.amount,
                discarded=requested - existing.amount,
                idempotent_replay=True,
                freezes=before.freezes,
            )

        balance, credited, discarded = credit(before.freezes, freeze_type=freeze_type, amount=amount)
        after = replace(before, freezes=balance)
        await StreakService._persist(session, state, before=before, after=after, now_utc=now_utc)
        try:
            await append_ledger_entry(
                session,
                user_id=user_id,
                freeze_type=freeze_type,
                direction="CREDIT",
                amount=credited,
                balance_after=balance.available(freeze_type),
                resulting_streak=after.current_streak,
                source=LEDGER_SOURCE_GRANT,
                idempotency_key=ledger_key,
                now_utc=now_utc,
                metadata={"requested": amount, "discarded": discarded},
            )
        except IntegrityError as exc:
            # Same key committed by a concurrent grant; the retry replays it.
            raise StreakConcurrencyConflictError(f"grant key {idempotency_key} raced") from exc

        logger.info(
            "streak_freezes_granted",
            user_id=user_id,
            freeze_type=freeze_type.value,
            requested=amount,
            credited=credited,
            discarded=discarded,
        )
        return FreezeGrantResult(
            freeze_type=freeze_type,
            requested=amount,
            credited=credited,
            discarded=discarded,
            idempotent_replay=False,
            freezes=balance,
        )

    @staticmethod
    async def set_manual_capacity(
        session: AsyncSession,
        *,
        user_id: int,
        max_manual: int,
        now_utc: datetime,
    ) -> FreezeBalance:
        state = await StreakService._get_or_create_state(session, user_id, now_utc)
        before = StreakService._snapshot_from_model(state)
        after = replace(before, freezes=set_manual_capacity(before.freezes, max_manual=max_manual))
        if await StreakService._persist(session, state, before=before, after=after, now_utc=now_utc):
            logger.info(
                "streak_freeze_capacity_changed",
                user_id=user_id,
                previous_max=before.freezes.max_manual,
                max_manual=max_manual,
            )
        return after.freezes

    @staticmethod
    async def get_freezes(session: AsyncSession, *, user_id: int) -> FreezeBalance:
        state = await StreakRepo.get_by_user_id(session, user_id)
        if state is None:
            return FreezeBalance(manual=0, auto=0, max_manual=DEFAULT_MAX_MANUAL_FREEZES)
        return StreakService._snapshot_from_model(state).freezes

    @staticmethod
    async def list_freeze_history(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int,
    ) -> list[FreezeHistoryEntry]:
        entries = await FreezeLedgerRepo.list_for_user(session, user_id=user_id, limit=limit)
        return [history_entry_from_model(entry) for entry in entries]
