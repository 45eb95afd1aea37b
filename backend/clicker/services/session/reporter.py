import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from clicker.errors import RemoteIOError
from clicker.models import ScoreRecord, utcnow
from .controller import SessionController, SessionResult
from .store import ScoreStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    rank: int
    clicks_per_second: float

    def to_dict(self):
        return {'rank': self.rank, 'clicks_per_second': self.clicks_per_second}


@dataclass(frozen=True)
class HistoryView:
    """Average and ranked list of a user's recent sessions (rank 1 is the newest)."""
    generation: int
    average: float = 0.0
    entries: List[HistoryEntry] = field(default_factory=list)

    def to_dict(self):
        return {
            'generation': self.generation,
            'average_clicks_per_second': self.average,
            'entries': [e.to_dict() for e in self.entries],
        }


def summarize(records: Sequence[ScoreRecord], generation: int) -> HistoryView:
    values = [float(r.clicks_per_second or 0.0) for r in records]
    average = sum(values) / len(values) if values else 0.0
    entries = [HistoryEntry(rank=i + 1, clicks_per_second=v) for i, v in enumerate(values)]
    return HistoryView(generation=generation, average=average, entries=entries)


Dispatch = Callable[..., None]
HistoryCallback = Callable[[SessionController, HistoryView], None]


def run_inline(fn, *args) -> None:
    fn(*args)


class ScoreReporter:
    """Persists finished sessions and refreshes the player's history.

    Attached to controllers as an EndGame listener. The store round trip runs
    through ``dispatch`` so the tick that ended the game is never blocked on it.
    Store failures are logged and leave an empty history; results for a
    session that has since been superseded are dropped.
    """

    def __init__(
        self,
        store: ScoreStore,
        dispatch: Dispatch = run_inline,
        limit: int = 10,
        on_history: Optional[HistoryCallback] = None,
    ):
        self.store = store
        self.dispatch = dispatch
        self.limit = limit
        self.on_history = on_history
        self._views: Dict[int, HistoryView] = {}

    def attach(self, controller: SessionController) -> None:
        controller.add_listener(self.handle_end_game)

    def view_for(self, user_id) -> Optional[HistoryView]:
        return self._views.get(user_id)

    def forget(self, user_id) -> None:
        self._views.pop(user_id, None)

    def handle_end_game(self, controller: SessionController, result: SessionResult) -> None:
        if result.user_id is None:
            logger.info('[score-skip] generation=%s no signed-in user', result.generation)
            return
        self.dispatch(self._report, controller, result)

    def _report(self, controller: SessionController, result: SessionResult) -> None:
        record = ScoreRecord(
            user_id=result.user_id,
            duration_seconds=result.duration_seconds,
            score=result.score,
            clicks_per_second=result.clicks_per_second,
            timestamp=utcnow(),
        )
        try:
            self.store.append(record)
        except RemoteIOError as exc:
            logger.warning('[score-append-failed] user=%s error=%s', result.user_id, exc)

        try:
            records = self.store.query_recent(result.user_id, limit=self.limit)
        except RemoteIOError as exc:
            logger.warning('[score-query-failed] user=%s error=%s', result.user_id, exc)
            records = []

        view = summarize(records, result.generation)
        current = self._views.get(result.user_id)
        superseded = current is not None and current.generation > view.generation
        if controller.generation != result.generation or superseded:
            logger.info('[history-stale] user=%s generation=%s current=%s',
                        result.user_id, result.generation, controller.generation)
            return
        self._views[result.user_id] = view
        if self.on_history is not None:
            self.on_history(controller, view)
