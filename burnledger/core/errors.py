class BurnedError(Exception):
    """Base class for burned-ledger failures. `code` is stable and returned to clients."""

    code = "BURNED_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class ProfileMissing(BurnedError):
    code = "BURNED_DEFAULTS_PROFILE_MISSING"


class DefaultsInputMissing(BurnedError):
    code = "BURNED_DEFAULTS_INPUT_MISSING"


class MaxExceeded(BurnedError):
    code = "BURNED_MAX_EXCEEDED"


class NegativeNotAllowed(BurnedError):
    code = "BURNED_NEGATIVE_NOT_ALLOWED"


class TdeeBelowBmr(BurnedError):
    code = "BURNED_TDEE_BELOW_BMR"


class InvalidNumber(BurnedError):
    code = "BURNED_INVALID_NUMBER"


class ReductionPctInvalid(BurnedError):
    code = "BURNED_REDUCTION_PCT_INVALID"


class VendorSyncError(BurnedError):
    code = "VENDOR_SYNC_FAILED"
