"""Session domain services: countdown, scoring and score history.

The controller and clocks are Flask-free so the timing rules can be
exercised without a server or database; the store, reporter and registry
bind them to the application.
"""

from .clock import Clock, ManualClock, SocketIOClock, TickHandle
from .controller import GameState, SessionController, SessionResult

__all__ = [
    'Clock',
    'ManualClock',
    'SocketIOClock',
    'TickHandle',
    'GameState',
    'SessionController',
    'SessionResult',
]
