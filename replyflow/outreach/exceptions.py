"""Errors raised by the outreach workflows; the HTTP layer maps them to status codes."""

from typing import Any


class OutreachError(Exception):
    """Base class for outreach failures."""

    status_code = 500


class InvalidRequestError(OutreachError):
    status_code = 400


class NotFoundError(OutreachError):
    status_code = 404


class UpgradeRequiredError(OutreachError):
    """The free plan quota for ``feature`` is used up."""

    status_code = 402

    def __init__(self, feature: str, limit: int, period: str = "month"):
        super().__init__(f"Upgrade required for {feature}")
        self.feature = feature
        self.limit = limit
        self.period = period

    def to_dict(self) -> dict[str, Any]:
        return {"error": "upgrade_required", "feature": self.feature, "limit": self.limit, "period": self.period}


class SendFailedError(OutreachError):
    status_code = 500

    def __init__(self, message: str, code: str, email_id: str):
        super().__init__(message)
        self.code = code
        self.email_id = email_id
