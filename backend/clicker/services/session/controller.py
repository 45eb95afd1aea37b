import enum
import functools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from clicker.errors import SessionStateError
from .clock import Clock, TickHandle


logger = logging.getLogger(__name__)


class GameState(str, enum.Enum):
    START = 'start'
    IN_GAME = 'in_game'
    END_GAME = 'end_game'


@dataclass(frozen=True)
class SessionResult:
    """What a finished session hands to EndGame listeners."""
    user_id: Optional[int]
    generation: int
    score: int
    duration_seconds: float

    @property
    def clicks_per_second(self) -> float:
        return self.score / self.duration_seconds


EndGameListener = Callable[['SessionController', SessionResult], None]


class SessionController:
    """State machine for one player's tap session.

    Start -> InGame -> EndGame -> Start (or straight back to InGame on replay).
    While InGame a clock subscription decrements the countdown; when it hits
    zero the subscription is cancelled and EndGame listeners are notified.

    Reaching exactly BONUS_THRESHOLD taps awards BONUS_POINTS once per session.
    """

    BONUS_THRESHOLD = 20
    BONUS_POINTS = 2

    def __init__(
        self,
        clock: Clock,
        user_id: Optional[int] = None,
        duration_seconds: float = 3.0,
        tick_interval: float = 0.01,
        min_duration: float = 1.0,
        max_duration: float = 10.0,
        generation: int = 0,
    ):
        self.clock = clock
        self.user_id = user_id
        self.tick_interval = tick_interval
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.duration_seconds = self._validate_duration(duration_seconds)
        self.remaining_seconds = self.duration_seconds
        self.state = GameState.START
        self.score = 0
        self.generation = generation
        self._bonus_applied = False
        self._subscription: Optional[TickHandle] = None
        self._listeners: List[EndGameListener] = []
        self._lock = threading.RLock()

    def _validate_duration(self, seconds) -> float:
        try:
            seconds = float(seconds)
        except (TypeError, ValueError):
            raise ValueError(f'duration must be a number, got {seconds!r}')
        if not self.min_duration <= seconds <= self.max_duration:
            raise ValueError(
                f'duration must be between {self.min_duration:g} and {self.max_duration:g} seconds'
            )
        return seconds

    def add_listener(self, listener: EndGameListener) -> None:
        self._listeners.append(listener)

    @property
    def clicks_per_second(self) -> float:
        return self.score / self.duration_seconds

    @property
    def is_ticking(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def set_duration(self, seconds) -> float:
        with self._lock:
            # only from the start screen; an ended game keeps the duration it was scored with
            if self.state != GameState.START:
                raise SessionStateError('The duration can only be changed before a game starts')
            self.duration_seconds = self._validate_duration(seconds)
            self.remaining_seconds = self.duration_seconds
            return self.duration_seconds

    def start(self) -> None:
        """Begin a new game, replacing any game already running."""
        with self._lock:
            self._cancel_subscription()
            self.score = 0
            self.remaining_seconds = self.duration_seconds
            self._bonus_applied = False
            self.generation += 1
            self.state = GameState.IN_GAME
            self._subscription = self.clock.subscribe(
                self.tick_interval, functools.partial(self._on_tick, self.generation)
            )
            logger.info('[session-start] user=%s generation=%s duration=%ss',
                        self.user_id, self.generation, self.duration_seconds)

    def tap(self) -> bool:
        """Count one tap. Returns False when no game is running."""
        with self._lock:
            if self.state != GameState.IN_GAME:
                return False
            self.score += 1
            if self.score == self.BONUS_THRESHOLD and not self._bonus_applied:
                self._bonus_applied = True
                self.score += self.BONUS_POINTS
            return True

    def replay(self, restart: bool = False) -> None:
        with self._lock:
            if self.state != GameState.END_GAME:
                raise SessionStateError('Replay is only available once a game has ended')
            if restart:
                self.start()
                return
            self.score = 0
            self.remaining_seconds = self.duration_seconds
            self.state = GameState.START

    def stop(self) -> None:
        """Drop the clock subscription without ending the game."""
        with self._lock:
            self._cancel_subscription()

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self.clock.cancel(self._subscription)
            self._subscription = None

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self.generation or self.state != GameState.IN_GAME:
                return
            # rounding keeps whole multiples of the interval from leaving a float crumb
            self.remaining_seconds = max(0.0, round(self.remaining_seconds - self.tick_interval, 9))
            if self.remaining_seconds > 0:
                return
            self._cancel_subscription()
            self.state = GameState.END_GAME
            result = SessionResult(
                user_id=self.user_id,
                generation=self.generation,
                score=self.score,
                duration_seconds=self.duration_seconds,
            )
            listeners = list(self._listeners)
        logger.info('[session-end] user=%s generation=%s score=%s cps=%.2f',
                    result.user_id, result.generation, result.score, result.clicks_per_second)
        for listener in listeners:
            try:
                listener(self, result)
            except Exception:
                logger.exception('[end-game-listener-failed] user=%s generation=%s',
                                 result.user_id, result.generation)

    def snapshot(self) -> dict:
        with self._lock:
            payload = {
                'state': self.state.value,
                'score': self.score,
                'duration_seconds': self.duration_seconds,
                'remaining_seconds': self.remaining_seconds,
                'generation': self.generation,
            }
            if self.state == GameState.END_GAME:
                payload['clicks_per_second'] = self.clicks_per_second
            return payload
