from kioskwatch.actions import ActionDispatcher
from kioskwatch.config import ClickAction, SendKeysAction, Site
from kioskwatch.engine import Engine, EngineState, EngineStatus, OperatorStop
from kioskwatch.errors import CaptureFailure
from kioskwatch.frames import Point, RawFrame, Rect
from kioskwatch.matching import RegionEvaluator, Status
from kioskwatch.ui import Stats

from conftest import DummyCapture, DummyReader, make_frame, make_region


def _engine(regions, frames, desktop, reader, target="kiosk", stats=None, logs=None, results=None):
    site = Site(name="test", window_title="kiosk", regions=regions)
    engine = Engine(
        site=site,
        capture=DummyCapture(frames),
        evaluator=RegionEvaluator(reader),
        dispatcher=ActionDispatcher(desktop, target_window=lambda: target, sleep=lambda s: None),
        interval=0,
        stats=stats or Stats(),
        log_fn=(lambda m, l: logs.append((l, m))) if logs is not None else None,
        on_result=results.append if results is not None else None,
    )
    engine.capture.on_empty = engine.stop
    return engine


def test_still_watching_fires_one_click_and_restores_cursor(desktop):
    region = make_region(
        name="still-watching",
        bounds=Rect(0, 0, 4, 3),
        expected_text="Still Watching?",
        action=ClickAction(point=Point(960, 540)),
    )
    engine = _engine([region], [make_frame()], desktop, DummyReader("still watching?"))
    before = desktop.cursor_position()

    engine.tick(EngineState())

    assert desktop.clicks() == [("click", 960, 540)]
    assert desktop.cursor_position() == before


def test_frozen_region_fires_only_on_identical_consecutive_frames(desktop):
    region = make_region(expected_text="Nine", requires_frozen=True, action=SendKeysAction(keys="{F5}"))
    first = make_frame(seq=1)
    second = RawFrame(pixels=first.pixels.copy(), sequence=2)
    engine = _engine([region], [first, second], desktop, DummyReader("nine"))

    state = engine.tick(EngineState())
    assert not any(e[0] == "keys" for e in desktop.events)  # no previous frame yet

    engine.tick(state)
    assert [e for e in desktop.events if e[0] == "keys"] == [("keys", "{F5}", "kiosk")]
    assert desktop.active_window() == "operator"


def test_frozen_region_skipped_when_one_byte_changes(desktop):
    region = make_region(expected_text="Nine", requires_frozen=True, action=SendKeysAction(keys="{F5}"))
    first = make_frame(seq=1)
    pixels = first.pixels.copy()
    pixels[0, 0, 0] ^= 0x01
    results = []
    engine = _engine([region], [first, RawFrame(pixels=pixels, sequence=2)], desktop,
                     DummyReader("nine"), results=results)

    engine.tick(engine.tick(EngineState()))

    assert desktop.events == []
    assert [r.status for r in results] == [Status.SKIPPED, Status.SKIPPED]


def test_state_holds_only_two_frames(desktop, reader):
    frames = [make_frame(seq=i) for i in (1, 2, 3)]
    engine = _engine([], list(frames), desktop, reader)

    state = EngineState()
    for _ in frames:
        state = engine.tick(state)

    assert state.current is frames[2]
    assert state.previous is frames[1]
    assert state.ticks == 3


def test_every_region_is_evaluated_even_after_a_match(desktop):
    regions = [
        make_region(name="a", expected_text="hello", action=ClickAction(point=Point(1, 1))),
        make_region(name="b", expected_text="hello", action=ClickAction(point=Point(2, 2))),
        make_region(name="c", expected_text="bye", action=ClickAction(point=Point(3, 3))),
    ]
    results = []
    engine = _engine(regions, [make_frame()], desktop, DummyReader("Hello"), results=results)

    engine.tick(EngineState())

    assert desktop.clicks() == [("click", 1, 1), ("click", 2, 2)]
    assert [r.region.name for r in results] == ["a", "b", "c"]
    assert engine.stats.matches == 2
    assert engine.stats.actions == 2


def test_capture_failure_skips_tick_and_keeps_state(desktop, reader):
    logs = []
    engine = _engine([], [CaptureFailure("grab failed")], desktop, reader, logs=logs)
    state = EngineState(current=make_frame(seq=7), ticks=4)

    after = engine.tick(state)

    assert after is state
    assert engine.stats.errors == 1
    assert logs[0][0] == "ERROR"


def test_missing_window_does_not_block_later_regions(desktop):
    regions = [
        make_region(name="reload", expected_text="x", action=SendKeysAction(keys="{F5}")),
        make_region(name="click", expected_text="x", action=ClickAction(point=Point(4, 4))),
    ]
    engine = _engine(regions, [make_frame()], desktop, DummyReader("x"), target=None)

    engine.tick(EngineState())

    assert desktop.clicks() == [("click", 4, 4)]
    assert engine.stats.errors == 1
    assert desktop.active_window() == "operator"


def test_unexpected_error_does_not_end_the_loop(desktop):
    class ExplodingReader:
        def recognize(self, frame):
            raise RuntimeError("boom")

    region = make_region(expected_text="x")
    engine = _engine([region], [make_frame(seq=1), make_frame(seq=2)], desktop, ExplodingReader())

    state = engine.run()

    assert state.ticks == 2
    assert engine.stats.errors >= 2
    assert engine.status is EngineStatus.STOPPED


def test_run_stops_on_request_and_returns_state(desktop, reader):
    frames = [make_frame(seq=i) for i in (1, 2, 3)]
    engine = _engine([], frames, desktop, reader)

    state = engine.run()

    assert state.ticks == 3
    assert state.current.sequence == 3
    assert engine.status is EngineStatus.STOPPED


def test_stop_before_run_is_cleared(desktop, reader):
    engine = _engine([], [make_frame()], desktop, reader)
    engine.stop()
    assert engine.run().ticks == 1


def test_actions_are_persisted(tmp_path, desktop):
    stats = Stats(str(tmp_path / "stats.json"))
    region = make_region(expected_text="x")
    engine = _engine([region], [make_frame()], desktop, DummyReader("x"), stats=stats)

    engine.tick(EngineState())

    reloaded = Stats(str(tmp_path / "stats.json"))
    reloaded.load()
    assert reloaded.get()["total_actions"] == 1


def test_failing_action_does_not_block_later_regions(desktop):
    regions = [
        make_region(name="first", expected_text="x", action=ClickAction(point=Point(1, 1))),
        make_region(name="second", expected_text="x", action=ClickAction(point=Point(2, 2))),
    ]
    logs = []
    engine = _engine(regions, [make_frame()], desktop, DummyReader("x"), logs=logs)
    real_click = desktop.click

    def click(x, y):
        if (x, y) == (1, 1):
            raise RuntimeError("mouse refused")
        real_click(x, y)

    desktop.click = click

    engine.tick(EngineState())

    assert desktop.clicks() == [("click", 2, 2)]
    assert engine.stats.errors == 1
    assert engine.stats.actions == 1
    assert desktop.cursor_position() == Point(10, 20)
    assert any(level == "ERROR" and "first" in msg for level, msg in logs)


def test_keys_we_send_do_not_stop_the_engine(desktop, send_keys_region):
    engine = _engine([send_keys_region], [make_frame(seq=1), make_frame(seq=2)],
                     desktop, DummyReader("nine"))
    hook = OperatorStop(engine, engine.dispatcher, desktop.active_window)
    sent = []

    def send_keys(sequence):
        sent.append(sequence)
        hook(None)  # the global hook sees our own F5

    desktop.send_keys = send_keys

    state = engine.run()

    assert sent == ["{F5}", "{F5}"]
    assert state.ticks == 2
    assert engine.stats.actions == 2


def test_only_keys_typed_in_the_console_stop_the_engine(desktop, reader):
    engine = _engine([], [make_frame()], desktop, reader)
    hook = OperatorStop(engine, engine.dispatcher, desktop.active_window, console="operator")

    desktop.active = "kiosk"
    assert hook(None) is False

    desktop.active = "operator"
    assert hook(None) is True
