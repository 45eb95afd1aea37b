import threading
from typing import Dict

from flask import current_app, has_app_context

from clicker import socketio
from .clock import Clock, ManualClock, SocketIOClock
from .controller import SessionController, SessionResult
from .reporter import HistoryView, ScoreReporter
from .store import SqlScoreStore


EXTENSION_KEY = 'clicker'


def room_for(user_id) -> str:
    return f"user:{user_id}"


class SessionRegistry:
    """Owns one SessionController per signed-in user."""

    def __init__(self, app, clock: Clock, reporter: ScoreReporter):
        self.app = app
        self.clock = clock
        self.reporter = reporter
        self._controllers: Dict[int, SessionController] = {}
        # last generation handed out per user, so a new controller never reuses one
        self._generations: Dict[int, int] = {}
        self._lock = threading.Lock()

    def for_user(self, user_id: int) -> SessionController:
        with self._lock:
            controller = self._controllers.get(user_id)
            if controller is None:
                cfg = self.app.config
                controller = SessionController(
                    self.clock,
                    user_id=user_id,
                    duration_seconds=cfg.get('DEFAULT_DURATION_SEC', 3.0),
                    tick_interval=cfg.get('TICK_INTERVAL_SEC', 0.01),
                    min_duration=cfg.get('MIN_DURATION_SEC', 1.0),
                    max_duration=cfg.get('MAX_DURATION_SEC', 10.0),
                    generation=self._generations.get(user_id, 0),
                )
                controller.add_listener(self._on_end_game)
                self.reporter.attach(controller)
                self._controllers[user_id] = controller
            return controller

    def drop(self, user_id: int) -> None:
        with self._lock:
            controller = self._controllers.pop(user_id, None)
            if controller is not None:
                self._generations[user_id] = controller.generation
        if controller is not None:
            controller.stop()
        self.reporter.forget(user_id)

    def snapshot(self, user_id: int) -> dict:
        controller = self.for_user(user_id)
        payload = controller.snapshot()
        view = self.reporter.view_for(user_id)
        payload['history'] = view.to_dict() if view else None
        payload['history_pending'] = payload['state'] == 'end_game' and (
            view is None or view.generation != payload['generation']
        )
        return payload

    def publish(self, user_id: int) -> None:
        socketio.emit('state_update', self.snapshot(user_id), to=room_for(user_id), namespace='/ws')

    def _on_end_game(self, controller: SessionController, result: SessionResult) -> None:
        self.publish(controller.user_id)

    def push_history(self, controller: SessionController, view: HistoryView) -> None:
        socketio.emit('history_update', view.to_dict(), to=room_for(controller.user_id), namespace='/ws')


def make_dispatcher(app):
    """Run score store work off the tick path, inline under TESTING."""

    def dispatch(fn, *args):
        def _run():
            with app.app_context():
                try:
                    fn(*args)
                except Exception:
                    app.logger.exception('[report-failed] background score report raised')

        if app.config.get('TESTING') and not app.config.get('ENABLE_BACKGROUND_IN_TESTS'):
            if has_app_context():
                fn(*args)
            else:
                _run()
        else:
            socketio.start_background_task(_run)

    return dispatch


def build_clock(app) -> Clock:
    kind = app.config.get('TICK_CLOCK', 'socketio')
    if kind == 'manual':
        return ManualClock()
    if kind == 'socketio':
        return SocketIOClock(socketio)
    raise ValueError(f"unknown TICK_CLOCK {kind!r}; expected 'socketio' or 'manual'")


def init_registry(app) -> SessionRegistry:
    reporter = ScoreReporter(
        SqlScoreStore(),
        dispatch=make_dispatcher(app),
        limit=int(app.config.get('HISTORY_LIMIT', 10)),
    )
    registry = SessionRegistry(app, build_clock(app), reporter)
    reporter.on_history = registry.push_history
    app.extensions[EXTENSION_KEY] = registry
    app.logger.info(f"[registry-init] clock={type(registry.clock).__name__} history_limit={reporter.limit}")
    return registry


def get_registry() -> SessionRegistry:
    return current_app.extensions[EXTENSION_KEY]
