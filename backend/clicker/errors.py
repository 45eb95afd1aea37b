class ClickerError(Exception):
    """Base class for errors raised by the click counter services."""


class AuthError(ClickerError):
    """Sign-in or sign-up was refused. The message is shown to the user as-is."""


class RemoteIOError(ClickerError):
    """Reading or writing the score store failed."""


class SessionStateError(ClickerError):
    """A session transition was requested from a state that does not allow it."""
