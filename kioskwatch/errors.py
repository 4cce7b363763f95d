"""
kioskwatch/errors.py - What can go wrong.

Config-time errors (ConfigError and friends) stop the program before the
loop starts. Everything else is a per-tick problem: logged, then we try
again next tick.
"""


class KioskWatchError(Exception):
    """Base class for everything this package raises on purpose."""


class ConfigError(KioskWatchError):
    # Bad or unreadable config.yaml
    pass


class OutOfBounds(ConfigError):
    # A rectangle doesn't fit inside the frame it is cut from
    pass


class KeySequenceError(ConfigError):
    # SendKeys string we can't make sense of
    pass


class CaptureFailure(KioskWatchError):
    # Screen grab failed. Skip the tick.
    pass


class ReferenceImageLoadFailure(KioskWatchError):
    # Reference PNG missing or unreadable. Skip that region this tick.
    pass


class WindowUnavailable(KioskWatchError):
    # Target window is gone (closed, crashed, never launched)
    pass
