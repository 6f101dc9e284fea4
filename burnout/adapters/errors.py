"""Source-level error taxonomy.

Raised inside adapters and the normalizer, caught at the adapter boundary
(or by the façade for per-record parse failures) and converted into a
FailureReason tag. None of these escape the reconciliation façade.
"""

from burnout.domain.models import FailureReason


class SourceError(Exception):
    """Base class: carries the FailureReason it maps to."""

    reason: FailureReason = FailureReason.GENERIC

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(detail or self.reason.value)


class AuthError(SourceError):
    """No bearer credential could be resolved, or the store rejected it."""

    reason = FailureReason.AUTH


class SourceTimeoutError(SourceError):
    """Credential discovery or a fetch exceeded its time budget."""

    reason = FailureReason.TIMEOUT


class SourcePermissionError(SourceError):
    """The origin denied access to the requested rows."""

    reason = FailureReason.PERMISSION_DENIED


class SchemaError(SourceError):
    """An expected table or column is absent."""

    reason = FailureReason.TABLE_MISSING


class ParseError(SourceError):
    """A stored value or blob field could not be decoded."""

    reason = FailureReason.PARSE
