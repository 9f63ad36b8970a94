from app.economy.streak.types import StreakErrorCode


class StreakError(Exception):
    code: StreakErrorCode

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.code.value)
        self.detail = detail


class StreakRecordNotFoundError(StreakError):
    code = StreakErrorCode.RECORD_NOT_FOUND


class InsufficientFreezeCreditsError(StreakError):
    code = StreakErrorCode.INSUFFICIENT_CREDITS


class FreezeGapTooLargeError(StreakError):
    code = StreakErrorCode.GAP_TOO_LARGE


class StreakConcurrencyConflictError(StreakError):
    code = StreakErrorCode.CONCURRENCY_CONFLICT


class StreakInvalidInputError(StreakError):
    code = StreakErrorCode.INVALID_INPUT


class StreakDecisionRequiredError(StreakError):
    code = StreakErrorCode.DECISION_REQUIRED
