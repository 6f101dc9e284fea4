"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.
Source-level failures never reach this layer; see burnout.adapters.errors.
"""

from shared.config import settings


def _problem_type(slug: str) -> str:
    return f"{settings.problem_base_uri.rstrip('/')}/{slug}"


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class InvalidLookbackError(ProblemDetailError):
    def __init__(self, lookback: str, allowed: set[str]):
        allowed_str = ", ".join(sorted(allowed))
        super().__init__(
            type_uri=_problem_type("invalid-lookback"),
            title="Invalid Lookback Window",
            status=400,
            detail=(
                f"Lookback value '{lookback}' is not supported. "
                f"Must be one of: {allowed_str}, or a positive number of days"
            ),
        )


class InvalidGranularityError(ProblemDetailError):
    def __init__(self, granularity: str, allowed: set[str]):
        allowed_str = ", ".join(sorted(allowed))
        super().__init__(
            type_uri=_problem_type("invalid-granularity"),
            title="Invalid Granularity",
            status=400,
            detail=f"Granularity '{granularity}' is not supported. Must be one of: {allowed_str}",
        )
