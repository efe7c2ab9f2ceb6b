"""
Failure signals raised by the slot machine.

Every signal rejects the whole call that raised it: callers see the signal
name and nothing that happened before it survives.
"""


class GambitError(Exception):
    """Base class for machine failures. `status_code` is the HTTP mapping."""

    status_code = 400
    default_detail = "Request rejected"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def signal(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"error": self.signal, "detail": self.detail}


class InsufficientValue(GambitError):
    status_code = 402
    default_detail = "Value sent is below the current spin cost"


class InsufficientBonusCredits(GambitError):
    status_code = 402
    default_detail = "A boosted spin needs one bonus credit"


class WaitForTick(GambitError):
    status_code = 425
    default_detail = "Wait for the next block before accepting"


class DeadlineExceeded(GambitError):
    status_code = 409
    default_detail = "The acting window for this spin has closed"


class NothingPending(GambitError):
    status_code = 409
    default_detail = "No pending spin to accept"


class ReentrantCall(GambitError):
    status_code = 409
    default_detail = "Reentrant call rejected"


class OutcomeOutOfBounds(GambitError):
    status_code = 500
    default_detail = "Reel outcome out of bounds"
