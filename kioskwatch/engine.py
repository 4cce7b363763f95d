"""
kioskwatch/engine.py - The poll loop.

    wait interval -> capture -> evaluate every region in order -> previous := current

One thread, one tick at a time. stop() is only noticed at the top of a tick;
an OCR call that hangs hangs the loop, and that's accepted.

Nothing that goes wrong inside a tick stops the loop. The kiosk runs for
weeks unattended, a flaky grab or a closed window is just a skipped tick.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from .actions import ActionDispatcher
from .config import ClickAction, Site
from .errors import WindowUnavailable
from .frames import RawFrame
from .matching import MatchResult, RegionEvaluator, Status
from .ui import Stats


LogFn = Callable[[str, str], None]


class EngineStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True, eq=False)
class EngineState:
    """
    The only memory the loop has: this tick's frame and last tick's.
    Never more than two frames alive.
    """
    current: Optional[RawFrame] = None
    previous: Optional[RawFrame] = None
    ticks: int = 0

    def advance(self, frame: RawFrame) -> "EngineState":
        # New frame comes in, old current gets demoted, old previous is dropped
        return EngineState(current=frame, previous=self.current, ticks=self.ticks + 1)


class FrameSource(Protocol):
    def capture(self) -> RawFrame: ...


class Engine:
    def __init__(
        self,
        site: Site,
        capture: FrameSource,
        evaluator: RegionEvaluator,
        dispatcher: ActionDispatcher,
        interval: float = 5.0,
        stats: Optional[Stats] = None,
        log_fn: Optional[LogFn] = None,
        on_result: Optional[Callable[[MatchResult], None]] = None,
    ) -> None:
        self.site = site
        self.capture = capture
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.interval = interval
        self.stats = stats or Stats()
        self._log = log_fn or (lambda m, l: None)
        self._on_result = on_result or (lambda r: None)
        self._stop = threading.Event()
        self._status = EngineStatus.STOPPED

    @property
    def status(self) -> EngineStatus:
        return self._status

    def stop(self) -> None:
        """Ask the loop to stop. Safe from any thread; takes effect at the next tick."""
        self._stop.set()

    def run(self, state: Optional[EngineState] = None) -> EngineState:
        state = state or EngineState()
        self._stop.clear()
        self._status = EngineStatus.RUNNING
        self._log(f"Watching '{self.site.name}' ({len(self.site.regions)} regions)", "SUCCESS")

        try:
            # Waiting on the event doubles as the interval sleep and the
            # cancellation check at the top of each tick
            while not self._stop.wait(self.interval):
                state = self.tick(state)
        finally:
            self._status = EngineStatus.STOPPED
            self._log(f"Stopped after {state.ticks} ticks", "WARN")

        return state

    def tick(self, state: EngineState) -> EngineState:
        """One capture + evaluate pass. Returns the state for the next tick."""
        self.stats.inc_ticks()

        try:
            frame = self.capture.capture()
        except Exception as e:  # CaptureFailure, or whatever the grabber throws
            self.stats.inc_errors()
            self._log(f"Capture failed: {e}", "ERROR")
            return state

        state = state.advance(frame)

        for region in self.site.regions:
            try:
                self._run_region(region, state)
            except Exception as e:
                # Anything unexpected costs this region its turn, never the
                # rest of the tick or the loop
                self.stats.inc_errors()
                self._log(f"{region.name} failed on tick {state.ticks}: {e!r}", "ERROR")

        return state

    def _run_region(self, region, state: EngineState) -> None:
        result = self.evaluator.evaluate(region, state.current, state.previous)
        self._on_result(result)

        if result.status is not Status.MATCHED:
            return

        self.stats.inc_matches()
        self._log(f"Match: {region.name} [{result.strategy.value}] {result.detail!r}", "SUCCESS")

        try:
            self.dispatcher.dispatch(region)
        except WindowUnavailable as e:
            self.stats.inc_errors()
            self._log(f"{region.name}: {e}", "ERROR")
            return

        self.stats.inc_actions()
        self.stats.save()
        self._log(f"{region.name}: {_describe(region.action)}", "CLICK")


def _describe(action) -> str:
    if isinstance(action, ClickAction):
        return f"clicked @ {action.point.x},{action.point.y}"
    return f"sent {action.keys}"


class OperatorStop:
    """
    Keyboard-hook callback: a key pressed in the watcher's own console stops
    the engine.

    The hook is global, so it also sees what the operator types elsewhere and
    the keys the dispatcher sends to the kiosk. Both are ignored. `console` is
    the window that had focus when we started; None means any window counts.
    """

    def __init__(
        self,
        engine: Engine,
        dispatcher: ActionDispatcher,
        active_window: Callable[[], object],
        console: object = None,
        log_fn: Optional[LogFn] = None,
    ) -> None:
        self.engine = engine
        self.dispatcher = dispatcher
        self._active_window = active_window
        self.console = console
        self._log = log_fn or (lambda m, l: None)

    def __call__(self, _event=None) -> bool:
        if self.dispatcher.injecting:
            return False
        if self.console is not None and self._active_window() != self.console:
            return False
        if self.engine.status is EngineStatus.RUNNING:
            self._log("Key pressed, stopping", "WARN")
        self.engine.stop()
        return True
