# Dashboard UI

import json
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

VERSION = "v1.0.0"

COLORS = {
    "border": "#334155",
    "muted": "#64748b",
    "text": "#e2e8f0",
    "text_dim": "#94a3b8",
    "heading": "#38bdf8",
    "success": "#10b981",
    "warn": "#f59e0b",
    "error": "#ef4444",
    "info": "#3b82f6",
    "click": "#10b981",
    "keys": "#a855f7",
    "idle": "#64748b",
    "active": "#10b981",
}

HEADER = "▓▓▓ KIOSK WATCH ▓▓▓"

# Region outcome -> colour in the regions panel
OUTCOME_STYLE = {
    "matched": COLORS["success"],
    "no_match": COLORS["text_dim"],
    "skipped": COLORS["muted"],
    "error": COLORS["error"],
}


class Stats:
    # Session stats; lifetime totals persist to JSON between runs.
    # No stats_file = memory only.

    def __init__(self, stats_file: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._start = datetime.now()
        self.stats_file = stats_file
        self.ticks = 0
        self.matches = 0
        self.actions = 0
        self.errors = 0
        self._total_actions = 0
        self._total_matches = 0

    def inc_ticks(self) -> None:
        with self._lock: self.ticks += 1

    def inc_matches(self) -> None:
        with self._lock:
            self.matches += 1
            self._total_matches += 1

    def inc_actions(self) -> None:
        with self._lock:
            self.actions += 1
            self._total_actions += 1

    def inc_errors(self) -> None:
        with self._lock: self.errors += 1

    def save(self) -> None:
        if not self.stats_file:
            return
        with self._lock:
            data = {
                "total_actions": self._total_actions,
                "total_matches": self._total_matches,
                "last_save": datetime.now().isoformat(),
            }
        try:
            path = Path(self.stats_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError:
            pass  # stats are nice-to-have, never worth a crash

    def load(self) -> None:
        if not self.stats_file:
            return
        path = Path(self.stats_file)
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return
        with self._lock:
            self._total_actions = int(data.get("total_actions", 0))
            self._total_matches = int(data.get("total_matches", 0))

    def get(self) -> dict:
        """Returns dict with keys: runtime, ticks, matches, actions, errors,
        total_actions, total_matches."""
        with self._lock:
            total_sec = max(0, int((datetime.now() - self._start).total_seconds()))
            h, rem = divmod(total_sec, 3600)
            m, s = divmod(rem, 60)
            return {
                "runtime": f"{h:02d}:{m:02d}:{s:02d}",
                "ticks": self.ticks,
                "matches": self.matches,
                "actions": self.actions,
                "errors": self.errors,
                "total_actions": self._total_actions,
                "total_matches": self._total_matches,
            }


class LogBuffer:
    def __init__(self, max_lines: int = 15) -> None:
        self._lines = deque(maxlen=max_lines)
        self._lock = threading.Lock()

    def add(self, message: str, level: str = "INFO") -> None:
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        with self._lock:
            self._lines.append((timestamp, level, message))

    def get_all(self):
        with self._lock: return list(self._lines)


class Dashboard:
    STATUS_IDLE = "idle"
    STATUS_WATCHING = "watching"
    STATUS_STOPPED = "stopped"
    STATUS_ERROR = "error"

    def __init__(
        self, site: str = "", screen: int = 0, interval: int = 5,
        refresh_ms: int = 250, stats: Optional[Stats] = None
    ) -> None:
        self._live = None
        self._site = site
        self._screen = screen
        self._interval = interval
        self._refresh_ms = max(refresh_ms, 10)
        self._console = Console()
        self._stats = stats or Stats()
        self._log = LogBuffer(max_lines=50)
        self._status = self.STATUS_IDLE
        self._status_detail = ""
        self._regions: Dict[str, Tuple[str, str]] = {}
        self._lock = threading.Lock()

    @property
    def stats(self): return self._stats

    @property
    def log_buffer(self): return self._log

    def log(self, message: str, level: str = "INFO"):
        self._log.add(message, level)

    def set_status(self, status: str, detail: str = ""):
        with self._lock:
            self._status = status
            self._status_detail = detail

    def set_region(self, name: str, outcome: str, detail: str = ""):
        with self._lock:
            self._regions[name] = (outcome, detail)

    def start(self):
        self._live = Live(
            self._render(), console=self._console,
            refresh_per_second=1000 // self._refresh_ms,
            screen=True, transient=False
        )
        self._live.start()

    def update(self):
        if self._live: self._live.update(self._render())

    def stop(self):
        if self._live:
            self._live.stop()
            self._live = None

    def _render(self):
        layout = Layout()
        layout.split(
            Layout(name="header", size=4),
            Layout(name="middle", size=10),
            Layout(name="log", ratio=1, minimum_size=5),
            Layout(name="footer", size=3)
        )
        layout["middle"].split_row(
            Layout(name="stats", ratio=1),
            Layout(name="regions", ratio=2)
        )
        layout["header"].update(self._render_header())
        layout["stats"].update(self._render_stats())
        layout["regions"].update(self._render_regions())
        layout["log"].update(self._render_log())
        layout["footer"].update(self._render_footer())
        return layout

    def _render_header(self):
        if self._status == self.STATUS_WATCHING:
            badge = Text(" ● Watching ", style=f"bold {COLORS['active']}")
        elif self._status == self.STATUS_STOPPED:
            badge = Text(" ■ Stopped ", style=f"bold {COLORS['warn']}")
        elif self._status == self.STATUS_ERROR:
            badge = Text(" ✖ Error ", style=f"bold {COLORS['error']}")
        else:
            badge = Text(" ● Idle ", style=f"bold {COLORS['idle']}")

        subtitle = Text()
        subtitle.append(f"  {VERSION}  ", style=f"bold {COLORS['text_dim']}")
        subtitle.append("│ Site: ", style=COLORS['border'])
        subtitle.append(self._site or "None", style=f"bold {COLORS['text']}")
        subtitle.append(f"  │ Screen {self._screen} every {self._interval}s  │  ", style=COLORS['border'])
        subtitle.append_text(badge)
        if self._status_detail:
            subtitle.append(f"  {self._status_detail}", style=COLORS['text_dim'])

        title = Text(HEADER, style=f"bold {COLORS['heading']}")
        return Panel(Group(Align.center(title), Align.center(subtitle)), border_style=COLORS['border'])

    def _render_stats(self):
        data = self._stats.get()
        table = Table.grid(padding=(0, 2), expand=True)
        table.add_column("L", justify="right", style=COLORS['muted'])
        table.add_column("V", justify="left", style=f"bold {COLORS['text']}")
        table.add_row("Runtime", data["runtime"])
        table.add_row("Ticks", str(data["ticks"]))
        table.add_row("Matches", str(data["matches"]))
        table.add_row("Actions", str(data["actions"]))
        table.add_row("Lifetime", f"{data['total_actions']} actions")
        if data["errors"] > 0:
            table.add_row("Errors", Text(str(data["errors"]), style=f"bold {COLORS['error']}"))

        return Panel(table, title=f"[{COLORS['heading']}]Live Stats[/]", border_style=COLORS['border'])

    def _render_regions(self):
        with self._lock:
            regions = list(self._regions.items())

        if not regions:
            return Panel(Align.center(Text("Waiting for first tick...", style=COLORS['muted'])),
                         title=f"[{COLORS['heading']}]Regions[/]", border_style=COLORS['border'])

        table = Table.grid(padding=(0, 2), expand=True)
        table.add_column("Region", style=COLORS['text'])
        table.add_column("Last", justify="left")
        table.add_column("Detail", style=COLORS['text_dim'], overflow="ellipsis", no_wrap=True)
        for name, (outcome, detail) in regions:
            style = OUTCOME_STYLE.get(outcome, COLORS['text'])
            table.add_row(name, Text(outcome.replace("_", " "), style=f"bold {style}"), detail)

        return Panel(table, title=f"[{COLORS['heading']}]Regions[/]", border_style=COLORS['border'])

    def _render_log(self):
        lines = self._log.get_all()
        term_height = self._console.size.height
        avail = max(3, term_height - 19)  # Approx
        visible = lines[-avail:] if lines else []

        if not visible:
            return Panel(Align.center(Text("Waiting...", style=COLORS['muted'])),
                         title=f"[{COLORS['heading']}]Log[/]", border_style=COLORS['border'])

        text = Text()
        for ts, lvl, msg in visible:
            text.append(f" {ts} ", style=COLORS['text_dim'])
            c = COLORS.get(lvl.lower(), COLORS['info'])
            text.append(f"[{lvl:^7}]", style=f"bold {c}")
            text.append(f" {msg}\n", style=COLORS['text'])

        return Panel(Align(text, vertical="bottom"), title=f"[{COLORS['heading']}]Event Log[/]", border_style=COLORS['border'])

    def _render_footer(self):
        f = Text()
        f.append("  Press any key to stop  ", style=COLORS['muted'])
        return Panel(Align.center(f), border_style=COLORS['border'])


def make_logger(dash: Dashboard):
    def log(msg: str, level: str = "INFO"):
        dash.log(msg, level)
        dash.update()
    return log
