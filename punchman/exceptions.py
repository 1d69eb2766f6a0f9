"""Punchman exceptions."""


class PunchmanError(Exception):
    """
    Structured exception for ledger infrastructure failures.

    Business outcomes (program disabled, no reward, invalid code) are never
    raised; they come back as result records with a reason code. This error
    is reserved for things the caller cannot fix by changing its input.

    Usage:
        try:
            result = earning.award_for_appointment(...)
        except PunchmanError as e:
            if e.retryable:
                schedule_retry()
    """

    _default_messages = {
        "CONFIG_UNAVAILABLE": "Loyalty configuration could not be fetched",
        "CONFIG_INVALID": "Loyalty configuration is invalid",
        "CONCURRENCY_CONFLICT": "Loyalty account was modified concurrently",
        "LEDGER_UNAVAILABLE": "Loyalty ledger is unavailable",
        "REFERRAL_CODE_UNAVAILABLE": "Could not generate a unique referral code",
        "INVALID_ARGUMENT": "Invalid argument",
    }

    def __init__(
        self,
        code: str,
        message: str | None = None,
        retryable: bool = False,
        **data,
    ):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.retryable = retryable
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "data": self.data,
        }


class VersionConflict(Exception):
    """
    Raised inside a ledger transaction when an optimistic write loses a race.

    Internal: LedgerStore.run_atomic() turns it into a retry, and finally
    into PunchmanError("CONCURRENCY_CONFLICT").
    """
