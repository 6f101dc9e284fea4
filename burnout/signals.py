"""Re-invocation triggers for the reconciliation pipeline.

`assessment_saved` is the process-wide "assessment saved" notification.
Writers emit it; this package only subscribes. TrendRefresher re-runs the
whole pipeline on each trigger (user change, view change, assessment saved)
instead of patching earlier output. In-flight runs are not cancelled: the
last run to resolve sets `latest`.

The HTTP service is request-scoped and does not subscribe; this module is
the API for callers that embed the pipeline in a long-lived view (a
dashboard process, a worker) and need it kept current.
"""

from collections.abc import Awaitable, Callable

import structlog

from burnout.domain.models import Granularity, TrendResult, UserContext
from burnout.pipeline import get_trend

logger = structlog.get_logger()

Subscriber = Callable[[str | None], Awaitable[None]]


class AssessmentSavedSignal:
    """Minimal async broadcast. Subscribers receive the saving user's ID (or None)."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def emit(self, user_id: str | None = None) -> None:
        for subscriber in list(self._subscribers):
            try:
                await subscriber(user_id)
            except Exception:
                logger.exception("assessment_saved_subscriber_failed", user_id=user_id)


assessment_saved = AssessmentSavedSignal()


class TrendRefresher:
    """Keeps the latest TrendResult for one view, recomputed on every trigger."""

    def __init__(
        self,
        user: UserContext,
        lookback_days: int,
        granularity: Granularity | str = Granularity.DAILY,
        *,
        signal: AssessmentSavedSignal | None = None,
        fetch: Callable[..., Awaitable[TrendResult]] = get_trend,
    ) -> None:
        self.user = user
        self.lookback_days = lookback_days
        self.granularity = Granularity(granularity)
        self.latest: TrendResult | None = None
        self._signal = signal or assessment_saved
        self._fetch = fetch
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._signal.subscribe(self._on_assessment_saved)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def refresh(self, trigger: str = "manual") -> TrendResult:
        result = await self._fetch(self.user, self.lookback_days, self.granularity)
        self.latest = result
        logger.info(
            "trend_refreshed",
            trigger=trigger,
            source_used=result.source_used.label,
            buckets=len(result.buckets),
        )
        return result

    async def set_user(self, user: UserContext) -> TrendResult | None:
        if user == self.user:
            return None
        self.user = user
        return await self.refresh("user_changed")

    async def set_view(
        self, lookback_days: int, granularity: Granularity | str
    ) -> TrendResult:
        self.lookback_days = lookback_days
        self.granularity = Granularity(granularity)
        return await self.refresh("view_changed")

    async def _on_assessment_saved(self, user_id: str | None) -> None:
        if user_id is not None and user_id != self.user.user_id:
            return
        await self.refresh("assessment_saved")
