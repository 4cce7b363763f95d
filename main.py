# Kiosk-Watch - keeps a full-screen kiosk browser alive
# Because walking over to click "Still Watching?" every two hours gets old

import sys
import time
from pathlib import Path
from typing import Optional

import keyboard

# Local imports
from kioskwatch import Settings, load_config, validate_bounds
from kioskwatch.actions import ActionDispatcher
from kioskwatch.desktop import Desktop, WindowHandle, WindowLocator
from kioskwatch.engine import Engine, OperatorStop
from kioskwatch.errors import ConfigError, KioskWatchError
from kioskwatch.matching import MatchResult, RegionEvaluator
from kioskwatch.ocr import TextReader
from kioskwatch.ui import Dashboard, Stats, make_logger
from kioskwatch.vision import ScreenCapture

# Configuration

CONFIG_PATH = Path("config.yaml")

DEFAULT_CONFIG = """
# Kiosk-Watch Configuration
#
# screen_index is 0-based (0 = primary). Region bounds are pixels relative
# to that screen. Click coordinates are absolute desktop coordinates.

screen_index: 1
interval_seconds: 5
active_site: "EarthCam Dublin"

timing:
  settle_delay_ms: 300
  launch_timeout_seconds: 10

ocr:
  tesseract_cmd: ""  # empty = use tesseract from PATH
  language: "eng"
  page_segmentation_mode: 7

ui:
  refresh_rate_ms: 250
  stats_file: "logs/stats.json"

sites:
  - name: "EarthCam Dublin"
    url: "https://www.earthcam.com/world/ireland/dublin/?cam=templebar"
    window_title: "earthcam"
    description: "Temple Bar webcam on the second screen"
    regions:
      # Stream stalled: the whole screen stopped changing and the vertical
      # camera label still reads "Nine". Reload.
      - name: "frozen-stream"
        bounds: {x: 99, y: 32, width: 35, height: 64}
        expected_text: "Nine"
        requires_frozen: true
        rotation_degrees: 90
        contrast_delta: -50
        action: {type: send_keys, keys: "{F5}"}

      # Player dropped out of full screen. The button only shows on hover.
      - name: "not-fullscreen"
        bounds: {x: 24, y: 967, width: 123, height: 88}
        reference_image: "white.png"
        action: {type: click, x: 3480, y: 760, hover: true, hover_ms: 1000}

      - name: "still-watching"
        bounds: {x: 855, y: 615, width: 190, height: 60}
        expected_text: "Still Watching?"
        action: {type: click, x: 2880, y: 540}
"""


class KioskWatch:
    # Wires config, capture, OCR, desktop and the dashboard around the engine

    def __init__(self):
        self.cfg: Optional[Settings] = None
        self.dash: Optional[Dashboard] = None
        self.log = lambda m, l: None  # Dummy logger until init
        self.screen: Optional[ScreenCapture] = None
        self.locator: Optional[WindowLocator] = None
        self.engine: Optional[Engine] = None
        self._window: Optional[WindowHandle] = None

    def bootstrap(self):
        # 1. Config First
        if not CONFIG_PATH.exists():
            CONFIG_PATH.write_text(DEFAULT_CONFIG.strip() + "\n", encoding="utf-8")
            print(f"Wrote a starter {CONFIG_PATH}. Edit the regions for your kiosk and run again.")
            sys.exit(0)

        try:
            self.cfg = load_config(CONFIG_PATH)
            site = self.cfg.site()
        except ConfigError as e:
            print(f"CRITICAL: Config failed to load: {e}")
            sys.exit(1)

        # 2. Screen + bounds check, before anything touches the mouse
        self.screen = ScreenCapture(screen_index=self.cfg.screen_index)
        try:
            bounds = self.screen.monitor_bounds()
            validate_bounds(site, bounds.width, bounds.height)
        except KioskWatchError as e:
            print(f"CRITICAL: {e}")
            sys.exit(1)

        # 3. UI
        stats = Stats(self.cfg.ui.stats_file)
        stats.load()
        self.dash = Dashboard(
            site=site.name,
            screen=self.cfg.screen_index,
            interval=self.cfg.interval_seconds,
            refresh_ms=self.cfg.ui.refresh_rate_ms,
            stats=stats,
        )
        self.log = make_logger(self.dash)
        self.dash.start()

        # 4. Browser
        desktop = Desktop()
        # Whatever has focus now is the console we were started from
        console = desktop.active_window()
        settle = self.cfg.timing.settle_delay_ms / 1000.0
        self.locator = WindowLocator(
            desktop=desktop,
            launch_timeout=self.cfg.timing.launch_timeout_seconds,
            settle_delay=settle,
            log_fn=self.log,
        )
        self._window = self.locator.load_or_find(site.url, site.window_title, bounds)
        if self._window is None:
            self.log(f"No browser window for '{site.window_title}' yet. Key actions will wait.", "WARN")

        # 5. Engine
        evaluator = RegionEvaluator(TextReader(self.cfg.ocr), log_fn=self.log)
        dispatcher = ActionDispatcher(
            desktop=desktop,
            target_window=self._target_window,
            settle_delay=settle,
            log_fn=self.log,
        )
        self.engine = Engine(
            site=site,
            capture=self.screen,
            evaluator=evaluator,
            dispatcher=dispatcher,
            interval=self.cfg.interval_seconds,
            stats=stats,
            log_fn=self.log,
            on_result=self._show_result,
        )

        # 6. Any key typed into our console stops us
        keyboard.on_press(OperatorStop(
            self.engine, dispatcher, desktop.active_window, console=console, log_fn=self.log,
        ))

        self.log(f"Started monitoring at {time.strftime('%H:%M')}", "SUCCESS")

    def _target_window(self) -> Optional[WindowHandle]:
        # Re-find the browser when it was restarted behind our back
        if self._window is None or not self.locator.desktop.is_alive(self._window):
            self._window = self.locator.find_window(self.cfg.site().window_title)
        return self._window

    def _show_result(self, result: MatchResult):
        self.dash.set_region(result.region.name, result.status.value, result.detail)
        self.dash.update()

    def run(self):
        self.bootstrap()
        self.dash.set_status(Dashboard.STATUS_WATCHING)

        try:
            self.engine.run()
        except KeyboardInterrupt:
            pass
        except Exception as e:
            self.dash.set_status(Dashboard.STATUS_ERROR, str(e))
            self.log(f"CRITICAL ERROR: {e}", "ERROR")
            import traceback
            traceback.print_exc()
            time.sleep(3.0)  # Give user time to see it
        finally:
            self.shutdown()

    def shutdown(self):
        try:
            keyboard.unhook_all()
        except Exception:
            pass
        if self.screen:
            self.screen.close()
        if self.dash:
            self.dash.set_status(Dashboard.STATUS_STOPPED)
            self.dash.stats.save()
            self.dash.stop()
        print("\nExiting Kiosk-Watch...")


def main():
    KioskWatch().run()


if __name__ == "__main__":
    main()
