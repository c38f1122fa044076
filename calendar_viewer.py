#!/usr/bin/env python3
# calendar_viewer: terminal month/week/day calendar for project tasks
#
# Hotkeys
#   p [ pageup     previous month/week/day (refused outside the project dates)
#   n ] pagedown   next month/week/day
#   h j k l        move the day cursor (arrows work too)
#   enter          open the cursor day in the day view
#   m w d          month / week / day view
#   t              back to today
#   r              reload the task snapshot
#   q              quit (esc leaves the day view)
#
# Config highlights
#   api_url: http://localhost:8080
#   user_id: 5f0c...            # personal calendar (tasks assigned to the user)
#   project_id: 42              # optional; project calendar instead
#   project:                    # optional bound window for navigation
#     start_date: 2025-01-01
#     end_date: 2025-03-31      # omit for an open-ended project
#   tasks_file: tasks.json      # optional offline snapshot (JSON or YAML)
#   locale: pl                  # en (built in) or a file from ./locales
#   view: month
#
# Environment
# - CALENDAR_API_TOKEN (Bearer token for the tasks API; .env TOKEN also works)
# - MOCK_FETCH=1 (optional offline demo)

from __future__ import annotations

import argparse
import datetime as dt
import json
import os
import sys
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import requests
import yaml
from prompt_toolkit import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style
from prompt_toolkit.utils import get_cwidth
import logging
from logging.handlers import RotatingFileHandler

from task_calendar import (
    BoundWindow,
    CalendarDay,
    CalendarEvent,
    CalendarView,
    Task,
    TaskStatus,
    ViewNavigator,
    hour_labels,
    tasks_from_payload,
    to_key,
)

Fragments = List[Tuple[str, str]]


# -----------------------------
# Config models
# -----------------------------
@dataclass
class Config:
    api_url: Optional[str] = None
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    tasks_file: Optional[str] = None
    project_start: Optional[dt.date] = None
    project_end: Optional[dt.date] = None
    locale: str = "en"
    view: str = CalendarView.MONTH.value

    def window(self) -> Optional[BoundWindow]:
        if self.project_start is None:
            return None
        return BoundWindow(self.project_start, self.project_end)


def _parse_config_date(value: object, label: str) -> Optional[dt.date]:
    if value is None or value == "":
        return None
    # YAML already turns unquoted 2025-01-01 into a date
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValueError(f"Config: '{label}' must be YYYY-MM-DD, got {value!r}") from None


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError("Config: top level must be a mapping.")
    project = raw.get("project") or {}
    if not isinstance(project, dict):
        raise ValueError(f"Config: 'project' must be a mapping: {project!r}")
    start = _parse_config_date(project.get("start_date"), "project.start_date")
    end = _parse_config_date(project.get("end_date"), "project.end_date")
    if end is not None and start is None:
        raise ValueError("Config: 'project.end_date' needs 'project.start_date'.")
    if start is not None and end is not None and end < start:
        raise ValueError(f"Config: project ends ({end}) before it starts ({start}).")
    view = str(raw.get("view") or CalendarView.MONTH.value).lower()
    if view not in {v.value for v in CalendarView}:
        raise ValueError(f"Config: unknown view {view!r} (month, week or day).")
    cfg = Config(
        api_url=(raw.get("api_url") or None),
        user_id=(str(raw["user_id"]) if raw.get("user_id") not in (None, "") else None),
        project_id=(str(raw["project_id"]) if raw.get("project_id") not in (None, "") else None),
        tasks_file=(raw.get("tasks_file") or None),
        project_start=start,
        project_end=end,
        locale=str(raw.get("locale") or "en"),
        view=view,
    )
    if cfg.api_url and not (cfg.user_id or cfg.project_id):
        raise ValueError("Config: 'api_url' needs 'user_id' or 'project_id'.")
    return cfg


# -----------------------------
# Locales
# -----------------------------
@dataclass
class CalendarLocale:
    name: str
    month_names: List[str]
    weekday_names: List[str]
    description: Optional[str] = None


DEFAULT_LOCALE = CalendarLocale(
    name="en",
    month_names=["January", "February", "March", "April", "May", "June",
                 "July", "August", "September", "October", "November", "December"],
    weekday_names=["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
)
LOCALE_DIR = Path(__file__).resolve().parent / "locales"


def _load_locale_presets(locale_dir: Path) -> Dict[str, CalendarLocale]:
    presets: Dict[str, CalendarLocale] = {DEFAULT_LOCALE.name: DEFAULT_LOCALE}
    if not locale_dir.is_dir():
        return presets
    candidates = sorted(locale_dir.glob("*.yml")) + sorted(locale_dir.glob("*.yaml"))
    for path in candidates:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError):
            logging.getLogger('calendar_viewer').warning("Failed to load locale file %s", path, exc_info=True)
            continue
        if not isinstance(data, dict):
            continue
        months = data.get("month_names")
        weekdays = data.get("weekday_names")
        if not (isinstance(months, list) and len(months) == 12 and isinstance(weekdays, list) and len(weekdays) == 7):
            logging.getLogger('calendar_viewer').warning("Locale %s needs 12 month_names and 7 weekday_names", path)
            continue
        name = str(data.get("name") or path.stem).strip().lower() or path.stem
        if name in presets and name != DEFAULT_LOCALE.name:
            continue
        presets[name] = CalendarLocale(
            name=name,
            month_names=[str(m) for m in months],
            weekday_names=[str(w) for w in weekdays],
            description=data.get("description"),
        )
    return presets


def resolve_locale(name: Optional[str], locale_dir: Path = LOCALE_DIR) -> CalendarLocale:
    presets = _load_locale_presets(locale_dir)
    key = (name or DEFAULT_LOCALE.name).strip().lower()
    if key not in presets:
        logging.getLogger('calendar_viewer').warning("Unknown locale %r; using %s", name, DEFAULT_LOCALE.name)
        return presets[DEFAULT_LOCALE.name]
    return presets[key]


# -----------------------------
# Task sources
# -----------------------------
def load_tasks_file(path: str) -> List[Task]:
    """Load a JSON or YAML snapshot: a list of tasks or {"tasks": [...]}."""
    with open(path, "r", encoding="utf-8") as f:
        if str(path).lower().endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("tasks")
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of tasks")
    return tasks_from_payload(data)


def _session(token: Optional[str]) -> requests.Session:
    s = requests.Session()
    s.headers.update({"Accept": "application/json"})
    if token:
        s.headers["Authorization"] = f"Bearer {token}"
    return s


def fetch_tasks(cfg: Config, token: Optional[str], session: Optional[requests.Session] = None) -> List[Task]:
    """Fetch the project's tasks (project_id set) or the user's tasks."""
    if not cfg.api_url:
        raise ValueError("Config: 'api_url' is required to fetch tasks.")
    s = session or _session(token)
    base = cfg.api_url.rstrip("/")
    if cfg.project_id:
        url = f"{base}/api/tasks/project/{cfg.project_id}"
        params = {"userId": cfg.user_id} if cfg.user_id else {}
    else:
        url = f"{base}/api/tasks/user/{cfg.user_id}"
        params = {"requestUserId": cfg.user_id}
    logging.getLogger('calendar_viewer').info("Fetching tasks from %s", url)
    resp = s.get(url, params=params, timeout=30)
    if resp.status_code >= 400:
        logging.getLogger('calendar_viewer').warning('fetch_tasks HTTP %s: %s', resp.status_code, resp.text[:200])
    resp.raise_for_status()
    return tasks_from_payload(resp.json())


def generate_mock_tasks(today: dt.date) -> List[Task]:
    """Synthetic tasks for the offline demo."""
    priorities = ["OPTIONAL", "IMPORTANT", "CRITICAL"]
    statuses = ["TO_DO", "IN_PROGRESS", "FINISHED"]
    tasks: List[Task] = []
    for i, d_off in enumerate(range(-6, 14, 2), start=1):
        start = today + dt.timedelta(days=d_off)
        span = i % 4
        end = start + dt.timedelta(days=span) if span else None
        tasks.append(Task(
            id=f"mock-{i}",
            name=f"Task {i}",
            description="Generated demo task",
            start_date=f"{start.isoformat()}T{8 + i % 9:02d}:00:00",
            end_date=f"{end.isoformat()}T{12 + i % 6:02d}:00:00" if end else None,
            priority=priorities[i % len(priorities)],
            status=statuses[i % len(statuses)],
            project_id="demo",
        ))
    return tasks


def load_dotenv_token() -> Optional[str]:
    """Load CALENDAR_API_TOKEN or TOKEN from a .env file (current dir or script dir)."""
    candidates = [os.getcwd(), os.path.dirname(os.path.abspath(__file__))]
    for base in candidates:
        path = os.path.join(base, ".env")
        if not os.path.isfile(path):
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#') or '=' not in line:
                        continue
                    k, v = line.split('=', 1)
                    k = k.strip()
                    v = v.strip().strip('"').strip("'")
                    if k in ("CALENDAR_API_TOKEN", "TOKEN") and v:
                        return v
        except OSError:
            logging.getLogger('calendar_viewer').warning("Unable to read %s", path, exc_info=True)
            continue
    return None


def load_tasks(cfg: Config, token: Optional[str], tasks_path: Optional[str] = None,
               today: Optional[dt.date] = None) -> List[Task]:
    path = tasks_path or cfg.tasks_file
    if path:
        return load_tasks_file(path)
    if os.environ.get("MOCK_FETCH") == "1":
        return generate_mock_tasks(today or dt.date.today())
    if cfg.api_url:
        return fetch_tasks(cfg, token)
    return []


# -----------------------------
# Logging
# -----------------------------
def configure_logging(log_level: str = 'ERROR', log_path: Optional[str] = None) -> None:
    """File logging for both loggers; handler level follows --log-level."""
    if log_path is None:
        log_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'calendar_viewer.log')
    lvl = getattr(logging, str(log_level).upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.ERROR
    fh = RotatingFileHandler(log_path, maxBytes=2000000, backupCount=2, encoding='utf-8')
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    for name in ('calendar_viewer', 'task_calendar'):
        logger = logging.getLogger(name)
        # reset handlers so repeated runs do not duplicate output
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
        logger.setLevel(logging.DEBUG)
        logger.addHandler(fh)


# -----------------------------
# UI helpers (fragments only)
# -----------------------------
BASE_STYLE: Dict[str, str] = {
    'calendar.title': 'bold #ffd75f',
    'calendar.header': 'bold #87d7ff',
    'calendar.day': '#f0f0f0',
    'calendar.muted': '#6c6c6c',
    'calendar.out': '#444444 italic',
    'calendar.today': 'bold #ff8787',
    'calendar.cursor': 'reverse bold',
    'calendar.hour': '#87afff',
    'calendar.continuation': '#8a8a8a',
    'status': 'reverse',
}

STATUS_GLYPHS: Dict[str, str] = {
    TaskStatus.TO_DO.value: '○',
    TaskStatus.IN_PROGRESS.value: '◐',
    TaskStatus.FINISHED.value: '●',
}

CELL_WIDTH = 14
EVENT_LINES = 2
WEEK_CELL_WIDTH = 12
HOUR_COL_WIDTH = 6


def _display_width(text: str) -> int:
    return sum(0 if unicodedata.combining(ch) else max(get_cwidth(ch), 1) for ch in text)


def _truncate(s: Optional[str], maxlen: int) -> str:
    """Truncate to a display width, ending with an ellipsis when cut."""
    s = (s or "").replace("\n", " ").replace("\r", " ")
    if maxlen <= 0:
        return ""
    if _display_width(s) <= maxlen:
        return s
    out: List[str] = []
    width = 0
    for ch in s:
        w = _display_width(ch)
        if width + w + 1 > maxlen:
            break
        out.append(ch)
        width += w
    return "".join(out) + "…"


def _pad_display(text: Optional[str], width: int) -> str:
    raw = _truncate(text, width)
    return raw + " " * max(0, width - _display_width(raw))


def status_glyph(status: Optional[str]) -> str:
    if status is None:
        return '·'
    return STATUS_GLYPHS.get(status, '·')


def _event_style(event: CalendarEvent) -> str:
    return f"fg:{event.color}"


def _event_label(event: CalendarEvent) -> str:
    label = f"{status_glyph(event.task.status)} {event.title}"
    if event.start_key != event.end_key and not event.is_end_date:
        label += " →"
    return label


def _day_style(day: CalendarDay, cursor: Optional[dt.date]) -> str:
    if cursor is not None and day.date == cursor:
        return 'class:calendar.cursor'
    if not day.is_in_bounds:
        return 'class:calendar.out'
    if day.is_today:
        return 'class:calendar.today'
    if not day.is_current_month:
        return 'class:calendar.muted'
    return 'class:calendar.day'


def month_fragments(nav: ViewNavigator, locale: CalendarLocale, cursor: Optional[dt.date] = None) -> Fragments:
    frags: Fragments = [('class:calendar.title', f" {nav.month_year_label()}"), ("", "\n")]
    header = "".join(_pad_display(name, CELL_WIDTH) for name in locale.weekday_names)
    frags.append(('class:calendar.header', header))
    frags.append(("", "\n"))
    grid = nav.grid
    for row in range(0, len(grid), 7):
        week = grid[row:row + 7]
        for day in week:
            label = f"{day.day_number:>2}" + ("•" if day.is_today else "")
            frags.append((_day_style(day, cursor), _pad_display(label, CELL_WIDTH)))
        frags.append(("", "\n"))
        for line in range(EVENT_LINES):
            for day in week:
                if line >= len(day.events):
                    frags.append(("", " " * CELL_WIDTH))
                    continue
                if line == EVENT_LINES - 1 and len(day.events) > EVENT_LINES:
                    frags.append(('class:calendar.muted', _pad_display(f"+{len(day.events) - line} more", CELL_WIDTH)))
                    continue
                event = day.events[line]
                frags.append((_event_style(event), _pad_display(_event_label(event), CELL_WIDTH)))
            frags.append(("", "\n"))
    if frags and frags[-1] == ("", "\n"):
        frags.pop()
    return frags


def _hour_cell(events: Sequence[CalendarEvent], width: int) -> Tuple[str, str]:
    if not events:
        return ("", " " * width)
    event = events[0]
    if event.is_start_of_day and not event.is_continuation:
        text = f"▶ {event.title}"
    elif event.is_end_of_day:
        text = f"└ {event.title}"
    elif event.is_start_of_day:
        text = f"┆ {event.title}"
    else:
        text = "┆"
    if len(events) > 1:
        text = f"{text} +{len(events) - 1}"
    style = _event_style(event) if not event.is_continuation or event.is_start_of_day else 'class:calendar.continuation'
    return (style, _pad_display(text, width))


def week_fragments(nav: ViewNavigator, locale: CalendarLocale, cursor: Optional[dt.date] = None) -> Fragments:
    days = nav.grid if nav.current_view is CalendarView.WEEK else nav.week_grid()
    frags: Fragments = [('class:calendar.title', f" {nav.week_range_label()}"), ("", "\n")]
    frags.append(('class:calendar.header', " " * HOUR_COL_WIDTH))
    for idx, day in enumerate(days):
        label = f"{locale.weekday_names[idx]} {day.date.day:02d}.{day.date.month:02d}"
        style = 'class:calendar.today' if day.is_today else ('class:calendar.out' if not day.is_in_bounds else 'class:calendar.header')
        if cursor is not None and day.date == cursor:
            style = 'class:calendar.cursor'
        frags.append((style, _pad_display(label, WEEK_CELL_WIDTH)))
    frags.append(("", "\n"))
    for hour, hour_label in enumerate(hour_labels()):
        frags.append(('class:calendar.hour', _pad_display(hour_label, HOUR_COL_WIDTH)))
        for day in days:
            frags.append(_hour_cell(nav.events_for_day_hour(day, hour), WEEK_CELL_WIDTH))
        frags.append(("", "\n"))
    frags.pop()
    return frags


def day_fragments(nav: ViewNavigator, locale: CalendarLocale) -> Fragments:
    day = nav.selected_day or nav.day()
    weekday = locale.weekday_names[day.date.weekday()]
    month = locale.month_names[day.date.month - 1]
    frags: Fragments = [('class:calendar.title', f" {weekday} {day.date.day} {month} {day.date.year}")]
    if not day.is_in_bounds:
        frags.append(('class:calendar.out', "  (outside project dates)"))
    frags.append(("", "\n"))
    for hour, hour_label in enumerate(hour_labels()):
        frags.append(('class:calendar.hour', _pad_display(hour_label, HOUR_COL_WIDTH)))
        events = nav.events_for_day_hour(day, hour)
        for idx, event in enumerate(events):
            if idx:
                frags.append(("", "  "))
            if event.is_continuation and not event.is_start_of_day and not event.is_end_of_day:
                frags.append(('class:calendar.continuation', f"┆ {event.title}"))
                continue
            marker = "└" if event.is_end_of_day else ("▶" if not event.is_continuation else "┆")
            frags.append((_event_style(event), f"{marker} {status_glyph(event.task.status)} {event.title}"))
        frags.append(("", "\n"))
    frags.pop()
    return frags


def render_summary(nav: ViewNavigator, locale: CalendarLocale) -> str:
    """Plain-text month overview for --no-ui."""
    grid = nav.month_grid()
    lines = [nav.month_year_label(), " ".join(f"{name[:2]:>4}" for name in locale.weekday_names)]
    for row in range(0, len(grid), 7):
        cells = []
        for day in grid[row:row + 7]:
            mark = "*" if day.events else " "
            cells.append(f"{day.day_number:>3}{mark}" if day.is_current_month else "    ")
        lines.append(" ".join(cells).rstrip())
    counts: Dict[str, int] = {}
    for task in nav.tasks:
        key = str(getattr(task.status, "value", task.status) or "UNKNOWN")
        counts[key] = counts.get(key, 0) + 1
    lines.append(f"Tasks: {len(nav.tasks)}" + (" (" + ", ".join(f"{k} {v}" for k, v in sorted(counts.items())) + ")" if counts else ""))
    if nav.window is not None:
        end = to_key(nav.window.end) if nav.window.end else "open"
        lines.append(f"Project dates: {to_key(nav.window.start)} .. {end}")
    return "\n".join(lines)


# -----------------------------
# TUI
# -----------------------------
@dataclass
class UIState:
    cursor: dt.date
    message: str = ""
    history: List[str] = field(default_factory=list)


def build_app(nav: ViewNavigator, locale: CalendarLocale,
              refresh: Optional[Callable[[], List[Task]]] = None,
              app_input=None, app_output=None) -> Application:
    """Full-screen calendar. Pass app_input/app_output to build without a terminal."""
    ui = UIState(cursor=nav.current_date)

    def set_message(msg: str) -> None:
        ui.message = msg
        if msg:
            ui.history.append(msg)

    def sync_cursor() -> None:
        ui.cursor = nav.current_date

    def body_fragments() -> Fragments:
        view = nav.current_view
        if view is CalendarView.WEEK:
            return week_fragments(nav, locale, ui.cursor)
        if view is CalendarView.DAY:
            return day_fragments(nav, locale)
        return month_fragments(nav, locale, ui.cursor)

    def status_text() -> str:
        prev_hint = "◀" if nav.can_navigate_previous() else " "
        next_hint = "▶" if nav.can_navigate_next() else " "
        parts = [f" {nav.current_view.value}", f"{prev_hint} {to_key(nav.current_date)} {next_hint}",
                 f"tasks {len(nav.tasks)}"]
        if ui.message:
            parts.append(ui.message)
        return " · ".join(parts)

    def step(direction: str) -> None:
        moved = nav.navigate_previous() if direction == 'previous' else nav.navigate_next()
        if moved:
            sync_cursor()
            set_message("")
        else:
            set_message("Outside project dates")

    def move_cursor(days: int) -> None:
        if nav.current_view is CalendarView.DAY:
            step('previous' if days < 0 else 'next')
            return
        target = ui.cursor + dt.timedelta(days=days)
        grid = nav.grid
        if grid and grid[0].date <= target <= grid[-1].date:
            ui.cursor = target

    kb = KeyBindings()

    @kb.add('p')
    @kb.add('[')
    @kb.add('pageup')
    def _(event):
        step('previous')

    @kb.add('n')
    @kb.add(']')
    @kb.add('pagedown')
    def _(event):
        step('next')

    @kb.add('h')
    @kb.add('left')
    def _(event):
        move_cursor(-1)

    @kb.add('l')
    @kb.add('right')
    def _(event):
        move_cursor(1)

    @kb.add('k')
    @kb.add('up')
    def _(event):
        if nav.current_view is CalendarView.MONTH:
            move_cursor(-7)

    @kb.add('j')
    @kb.add('down')
    def _(event):
        if nav.current_view is CalendarView.MONTH:
            move_cursor(7)

    @kb.add('enter')
    def _(event):
        if nav.current_view is CalendarView.DAY:
            return
        if nav.select_day(ui.cursor):
            set_message("")
        else:
            set_message("Outside project dates")

    @kb.add('escape')
    def _(event):
        if nav.current_view is CalendarView.DAY:
            nav.change_view(CalendarView.MONTH)
            sync_cursor()

    @kb.add('m')
    def _(event):
        nav.change_view(CalendarView.MONTH)
        sync_cursor()

    @kb.add('w')
    def _(event):
        nav.change_view(CalendarView.WEEK)
        sync_cursor()

    @kb.add('d')
    def _(event):
        nav.change_view(CalendarView.DAY)
        sync_cursor()

    @kb.add('t')
    def _(event):
        nav.go_today()
        sync_cursor()

    @kb.add('r')
    def _(event):
        if refresh is None:
            set_message("No task source to reload")
            return
        try:
            tasks = refresh()
        except (requests.RequestException, ValueError, OSError) as exc:
            logging.getLogger('calendar_viewer').error("Refresh failed: %s", exc)
            set_message(f"Refresh failed: {exc}")
            return
        nav.set_tasks(tasks)
        set_message(f"Loaded {len(tasks)} tasks")

    @kb.add('q')
    def _(event):
        event.app.exit()

    body = Window(content=FormattedTextControl(text=body_fragments), wrap_lines=False, always_hide_cursor=True)
    status = Window(height=1, content=FormattedTextControl(text=lambda: [('class:status', status_text())]))
    app = Application(
        layout=Layout(HSplit([body, status])),
        key_bindings=kb,
        full_screen=True,
        style=Style.from_dict(BASE_STYLE),
        input=app_input,
        output=app_output,
    )
    app.ui_state = ui
    return app


def run_ui(nav: ViewNavigator, locale: CalendarLocale,
           refresh: Optional[Callable[[], List[Task]]] = None) -> None:
    build_app(nav, locale, refresh).run()


# -----------------------------
# CLI
# -----------------------------
def _parse_cli_date(value: str) -> dt.date:
    text = value.strip()
    if len(text) == 7:
        text += "-01"
    return dt.date.fromisoformat(text)


def main(argv: Optional[Sequence[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Project task calendar")
    ap.add_argument("--config", help="Path to YAML config")
    ap.add_argument("--tasks", help="JSON/YAML task snapshot (overrides config and API)")
    ap.add_argument("--project-start", help="Limit navigation to a project starting YYYY-MM-DD")
    ap.add_argument("--project-end", help="Project end date YYYY-MM-DD (needs --project-start)")
    ap.add_argument("--view", choices=[v.value for v in CalendarView], help="Initial view")
    ap.add_argument("--date", help="Open at YYYY-MM or YYYY-MM-DD")
    ap.add_argument("--locale", help="Locale name (en or a file from ./locales)")
    ap.add_argument("--no-ui", action="store_true", help="Print a month summary and exit")
    ap.add_argument("--log-level", default="ERROR", help="File log level (DEBUG, INFO, WARNING, ERROR)")
    args = ap.parse_args(argv)

    configure_logging(args.log_level)
    try:
        cfg = load_config(args.config) if args.config else Config()
        if args.project_start:
            cfg.project_start = _parse_config_date(args.project_start, "--project-start")
            cfg.project_end = _parse_config_date(args.project_end, "--project-end")
        elif args.project_end:
            raise ValueError("--project-end needs --project-start")
        window = cfg.window()
        start_at = _parse_cli_date(args.date) if args.date else None
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    locale = resolve_locale(args.locale or cfg.locale)
    token = os.environ.get("CALENDAR_API_TOKEN") or load_dotenv_token()

    def refresh() -> List[Task]:
        return load_tasks(cfg, token, args.tasks)

    try:
        tasks = refresh()
    except requests.RequestException as e:
        print(f"Failed to fetch tasks: {e}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Failed to load tasks: {e}", file=sys.stderr)
        sys.exit(2)

    nav = ViewNavigator(tasks, window=window, view=CalendarView(args.view or cfg.view),
                        month_names=locale.month_names)
    if start_at is not None:
        if not nav.jump_to(start_at.month, start_at.year):
            print(f"{start_at.isoformat()} is outside the project dates", file=sys.stderr)
        elif len(args.date.strip()) > 7 and not nav.focus_date(start_at):
            print(f"{start_at.isoformat()} is outside the project dates", file=sys.stderr)

    if args.no_ui:
        print(render_summary(nav, locale))
        return

    run_ui(nav, locale, refresh)


if __name__ == "__main__":
    main()
