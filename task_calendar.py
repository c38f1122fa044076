#!/usr/bin/env python3
# task_calendar: calendar grid & event placement for project/task snapshots
#
# Views
#   month  6x7 grid (Monday first), leading/trailing days from adjacent months
#   week   7 days Monday..Sunday around the current date, 24 hour rows
#   day    a single day, 24 hour rows
#
# Notes
# - Day membership compares YYYY-MM-DD keys only; the time-of-day part of a
#   task date is used for hour placement and nothing else.
# - No time-zone conversion: an offset in a date-time string is dropped and
#   the wall-clock fields are kept as written.
# - An optional BoundWindow (a project's lifetime) constrains navigation.
#   A step whose month/week/day misses the window is refused; an accepted
#   step keeps the current date inside it.

from __future__ import annotations

import calendar
import datetime as dt
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

GRID_CELLS = 42
DAYS_PER_WEEK = 7
HOURS_PER_DAY = 24

PREVIOUS = -1
NEXT = 1


# -----------------------------
# Models
# -----------------------------
class TaskPriority(str, Enum):
    OPTIONAL = "OPTIONAL"
    IMPORTANT = "IMPORTANT"
    CRITICAL = "CRITICAL"


class TaskStatus(str, Enum):
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class CalendarView(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


PRIORITY_COLORS: Dict[str, str] = {
    TaskPriority.OPTIONAL.value: '#10b981',   # green
    TaskPriority.IMPORTANT.value: '#f59e0b',  # amber
    TaskPriority.CRITICAL.value: '#ef4444',   # red
}
DEFAULT_EVENT_COLOR = '#1976d2'


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    start_date: Optional[str]
    end_date: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    description: str = ""
    project_id: Optional[str] = None


@dataclass(frozen=True)
class CalendarEvent:
    task: Task
    title: str
    color: str
    start_key: str
    end_key: str
    start_hour: int = 0
    end_hour: int = 0
    has_end_date: bool = False
    is_end_date: bool = False
    is_start_of_day: bool = False
    is_end_of_day: bool = False
    is_continuation: bool = False


@dataclass(frozen=True)
class CalendarDay:
    date: dt.date
    day_number: int
    is_current_month: bool
    is_today: bool = False
    is_in_bounds: bool = True
    events: Tuple[CalendarEvent, ...] = ()


@dataclass(frozen=True)
class BoundWindow:
    start: dt.date
    end: Optional[dt.date] = None

    def __post_init__(self) -> None:
        if self.end is not None and self.end < self.start:
            raise ValueError(f"BoundWindow end {self.end} is before start {self.start}")


@dataclass(frozen=True)
class NavigationState:
    current_date: dt.date
    current_view: CalendarView = CalendarView.MONTH
    selected_day: Optional[CalendarDay] = None


# -----------------------------
# Date keys
# -----------------------------
def to_key(value: dt.date) -> str:
    """Format a date as YYYY-MM-DD from its own fields (no UTC shift)."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_key(key: str) -> dt.date:
    return dt.date.fromisoformat(key[:10])


def is_same_day(a: dt.date, b: dt.date) -> bool:
    return to_key(a) == to_key(b)


def is_today(value: dt.date, today: Optional[dt.date] = None) -> bool:
    return is_same_day(value, today or dt.date.today())


def parse_moment(value: object) -> Optional[dt.datetime]:
    """Parse an ISO date or date-time into a naive wall-clock datetime.

    Returns None for empty or unparseable values. Offsets are dropped, not
    converted.
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    if text[-1] in ('Z', 'z'):
        text = text[:-1]
    try:
        return dt.datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        pass
    try:
        day = dt.date.fromisoformat(text[:10])
    except ValueError:
        return None
    if len(text) > 10:
        logging.getLogger('task_calendar').debug("Dropping unparseable time part of %r", text)
    return dt.datetime(day.year, day.month, day.day)


# -----------------------------
# Task input
# -----------------------------
def _coerce_enum(enum_cls, raw: object) -> Optional[str]:
    if raw is None or raw == "":
        return None
    text = str(raw).strip()
    try:
        return enum_cls(text.upper())
    except ValueError:
        # unknown values stay visible with a neutral colour
        return text


def task_from_dict(raw: Mapping[str, object]) -> Optional[Task]:
    """Build a Task from the API's camelCase JSON (snake_case also accepted)."""
    if not isinstance(raw, Mapping):
        return None

    def pick(*names: str) -> object:
        for name in names:
            if raw.get(name) not in (None, ""):
                return raw.get(name)
        return None

    task_id = pick("id", "taskId", "task_id")
    start = pick("startDate", "start_date")
    end = pick("endDate", "end_date")
    project = pick("projectId", "project_id")
    return Task(
        id=str(task_id) if task_id is not None else "",
        name=str(pick("name", "title") or ""),
        description=str(pick("description") or ""),
        start_date=str(start) if start is not None else None,
        end_date=str(end) if end is not None else None,
        priority=_coerce_enum(TaskPriority, pick("priority")),
        status=_coerce_enum(TaskStatus, pick("status")),
        project_id=str(project) if project is not None else None,
    )


def tasks_from_payload(items: Iterable[object]) -> List[Task]:
    """Convert a fetched list; malformed items are skipped and logged."""
    out: List[Task] = []
    for idx, item in enumerate(items or []):
        task = task_from_dict(item) if isinstance(item, Mapping) else None
        if task is None:
            logging.getLogger('task_calendar').warning("Skipping task #%d: not an object (%r)", idx, type(item).__name__)
            continue
        if parse_moment(task.start_date) is None:
            logging.getLogger('task_calendar').warning(
                "Task %s (%s) has no usable startDate %r; it will not be shown", task.id or f"#{idx}", task.name, task.start_date)
        out.append(task)
    return out


# -----------------------------
# Event projection
# -----------------------------
@dataclass(frozen=True)
class TaskSpan:
    start_key: str
    end_key: str
    start_hour: int
    end_hour: int
    has_end_date: bool


def task_span(task: Task) -> Optional[TaskSpan]:
    """Day keys and hours covered by a task, or None when it cannot be placed."""
    start = parse_moment(task.start_date)
    if start is None:
        logging.getLogger('task_calendar').debug("Task %s has no usable start date: %r", task.id, task.start_date)
        return None
    if task.end_date:
        end = parse_moment(task.end_date)
        if end is None:
            logging.getLogger('task_calendar').debug("Task %s has an unparseable end date: %r", task.id, task.end_date)
            return None
        return TaskSpan(to_key(start), to_key(end), start.hour, end.hour, True)
    return TaskSpan(to_key(start), to_key(start), start.hour, start.hour, False)


def color_for_priority(priority: Optional[str], palette: Optional[Mapping[str, str]] = None) -> str:
    colors = palette if palette is not None else PRIORITY_COLORS
    if priority is None:
        return DEFAULT_EVENT_COLOR
    return colors.get(priority) or DEFAULT_EVENT_COLOR


def events_for_date(tasks: Iterable[Task], date: dt.date,
                    palette: Optional[Mapping[str, str]] = None) -> List[CalendarEvent]:
    """Events of every task whose [start, end or start] interval contains date.

    An inverted range (end before start) matches no day.
    """
    key = to_key(date)
    out: List[CalendarEvent] = []
    for task in tasks or ():
        span = task_span(task)
        if span is None or not (span.start_key <= key <= span.end_key):
            continue
        out.append(CalendarEvent(
            task=task,
            title=task.name,
            color=color_for_priority(task.priority, palette),
            start_key=span.start_key,
            end_key=span.end_key,
            start_hour=span.start_hour,
            end_hour=span.end_hour,
            has_end_date=span.has_end_date,
            is_end_date=key == span.end_key,
        ))
    return out


def _occupies_hour(event: CalendarEvent, key: str, hour: int) -> bool:
    if not (event.start_key <= key <= event.end_key):
        return False
    if key == event.start_key:
        return hour >= event.start_hour
    if key == event.end_key:
        return hour <= event.end_hour
    return True


def events_for_hour(day_events: Iterable[CalendarEvent], date: dt.date, hour: int) -> List[CalendarEvent]:
    """Events occupying (date, hour), with continuity hints set for rendering."""
    if not 0 <= hour < HOURS_PER_DAY:
        return []
    key = to_key(date)
    out: List[CalendarEvent] = []
    for event in day_events or ():
        if not _occupies_hour(event, key, hour):
            continue
        on_start_day = key == event.start_key
        if on_start_day:
            first_hour_today = hour == event.start_hour
        else:
            first_hour_today = hour == 0
        out.append(replace(
            event,
            is_end_date=key == event.end_key,
            is_continuation=key > event.start_key or (on_start_day and hour > event.start_hour),
            is_start_of_day=first_hour_today,
            is_end_of_day=event.has_end_date and key == event.end_key and hour == event.end_hour,
        ))
    return out


def hour_labels() -> List[str]:
    return [f"{h}:00" for h in range(HOURS_PER_DAY)]


# -----------------------------
# Range guard
# -----------------------------
def is_in_bounds(value: dt.date, window: Optional[BoundWindow]) -> bool:
    if window is None:
        return True
    if value < window.start:
        return False
    return window.end is None or value <= window.end


def clamp_to_window(value: dt.date, window: Optional[BoundWindow]) -> dt.date:
    if window is None:
        return value
    if value < window.start:
        return window.start
    if window.end is not None and value > window.end:
        return window.end
    return value


def month_length(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(value: dt.date, months: int) -> dt.date:
    """Shift by whole months, clipping the day to the target month's length."""
    month = value.month - 1 + months
    year = value.year + month // 12
    month = month % 12 + 1
    day = min(value.day, month_length(year, month))
    return dt.date(year, month, day)


def week_start(value: dt.date) -> dt.date:
    return value - dt.timedelta(days=value.weekday())


def unit_bounds(value: dt.date, view: CalendarView) -> Tuple[dt.date, dt.date]:
    """First and last day of the unit (month/week/day) that shows value."""
    view = CalendarView(view)
    if view is CalendarView.MONTH:
        first = value.replace(day=1)
        return first, first.replace(day=month_length(first.year, first.month))
    if view is CalendarView.WEEK:
        monday = week_start(value)
        return monday, monday + dt.timedelta(days=DAYS_PER_WEEK - 1)
    return value, value


def step_date(value: dt.date, view: CalendarView, direction: int) -> dt.date:
    if direction not in (PREVIOUS, NEXT):
        raise ValueError(f"direction must be {PREVIOUS} or {NEXT}, got {direction!r}")
    view = CalendarView(view)
    if view is CalendarView.MONTH:
        return add_months(value, direction)
    if view is CalendarView.WEEK:
        return value + dt.timedelta(days=DAYS_PER_WEEK * direction)
    return value + dt.timedelta(days=direction)


def unit_in_window(value: dt.date, view: CalendarView, window: Optional[BoundWindow]) -> bool:
    """True when any day of the unit showing value lies inside the window."""
    if window is None:
        return True
    first, last = unit_bounds(value, view)
    if last < window.start:
        return False
    return window.end is None or first <= window.end


def can_step_unit(direction: int, current_date: dt.date, view: CalendarView,
                  window: Optional[BoundWindow]) -> bool:
    """Whether a single previous/next step keeps part of the visible unit in the window.

    Checks the edge of the resulting unit that faces the window: the last day
    of the previous unit against the window start, the first day of the next
    unit against the window end.
    """
    candidate = step_date(current_date, view, direction)
    return unit_in_window(candidate, view, window)


def _picker_end(window: BoundWindow) -> dt.date:
    # open-ended windows offer pickers up to the end of the following year
    if window.end is not None:
        return window.end
    return dt.date(window.start.year + 1, 12, 31)


def available_years(window: Optional[BoundWindow]) -> List[int]:
    if window is None:
        return []
    return list(range(window.start.year, _picker_end(window).year + 1))


def available_months(year: int, window: Optional[BoundWindow]) -> List[int]:
    """Months (1-12) of year that intersect the window."""
    if window is None:
        return []
    end = _picker_end(window)
    if year < window.start.year or year > end.year:
        return []
    first = window.start.month if year == window.start.year else 1
    last = end.month if year == end.year else 12
    return list(range(first, last + 1))


# -----------------------------
# Grid builders
# -----------------------------
def _month_skeleton(year: int, month: int, today: dt.date) -> List[CalendarDay]:
    first = dt.date(year, month, 1)
    leading = (first.isoweekday() % 7 - 1 + 7) % 7  # Sunday=0 remapped to Monday=0
    days_in_month = month_length(year, month)
    cells: List[CalendarDay] = []
    for offset in range(leading, 0, -1):
        d = first - dt.timedelta(days=offset)
        cells.append(CalendarDay(date=d, day_number=d.day, is_current_month=False))
    for day in range(1, days_in_month + 1):
        d = dt.date(year, month, day)
        cells.append(CalendarDay(date=d, day_number=day, is_current_month=True, is_today=is_same_day(d, today)))
    trailing = max(0, GRID_CELLS - (leading + days_in_month))
    next_first = first + dt.timedelta(days=days_in_month)
    for offset in range(trailing):
        d = next_first + dt.timedelta(days=offset)
        cells.append(CalendarDay(date=d, day_number=d.day, is_current_month=False))
    return cells


def populate_days(days: Sequence[CalendarDay], tasks: Iterable[Task],
                  window: Optional[BoundWindow] = None,
                  palette: Optional[Mapping[str, str]] = None) -> List[CalendarDay]:
    """Second pass: attach events and bounds flags to a skeleton."""
    snapshot = list(tasks or ())
    return [
        replace(
            day,
            is_in_bounds=is_in_bounds(day.date, window),
            events=tuple(events_for_date(snapshot, day.date, palette)),
        )
        for day in days
    ]


def build_month_grid(year: int, month: int, tasks: Iterable[Task] = (),
                     window: Optional[BoundWindow] = None, today: Optional[dt.date] = None,
                     palette: Optional[Mapping[str, str]] = None) -> List[CalendarDay]:
    """The 42-cell (6x7, Monday first) grid for a month."""
    skeleton = _month_skeleton(year, month, today or dt.date.today())
    return populate_days(skeleton, tasks, window, palette)


def build_week_grid(value: dt.date, tasks: Iterable[Task] = (),
                    window: Optional[BoundWindow] = None, today: Optional[dt.date] = None,
                    palette: Optional[Mapping[str, str]] = None) -> List[CalendarDay]:
    today = today or dt.date.today()
    monday = week_start(value)
    skeleton: List[CalendarDay] = []
    for offset in range(DAYS_PER_WEEK):
        d = monday + dt.timedelta(days=offset)
        skeleton.append(CalendarDay(
            date=d,
            day_number=d.day,
            is_current_month=(d.year, d.month) == (value.year, value.month),
            is_today=is_same_day(d, today),
        ))
    return populate_days(skeleton, tasks, window, palette)


def build_day(value: dt.date, tasks: Iterable[Task] = (),
              window: Optional[BoundWindow] = None, today: Optional[dt.date] = None,
              palette: Optional[Mapping[str, str]] = None) -> CalendarDay:
    skeleton = CalendarDay(date=value, day_number=value.day, is_current_month=True,
                           is_today=is_same_day(value, today or dt.date.today()))
    return populate_days([skeleton], tasks, window, palette)[0]


# -----------------------------
# Labels
# -----------------------------
def month_year_label(value: dt.date, month_names: Optional[Sequence[str]] = None) -> str:
    names = month_names or calendar.month_name[1:]
    return f"{names[value.month - 1]} {value.year}"


def week_range_label(value: dt.date, day_format: str = "%d.%m") -> str:
    monday = week_start(value)
    sunday = monday + dt.timedelta(days=DAYS_PER_WEEK - 1)
    return f"{monday.strftime(day_format)} - {sunday.strftime(day_format)}"


# -----------------------------
# Navigator
# -----------------------------
class ViewNavigator:
    """Single-owner controller over NavigationState.

    Every accepted operation replaces ``state`` and rebuilds ``grid``; refused
    operations return False and leave both untouched. Callers must serialize
    access.
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        window: Optional[BoundWindow] = None,
        clock: Optional[Callable[[], dt.date]] = None,
        view: CalendarView = CalendarView.MONTH,
        month_names: Optional[Sequence[str]] = None,
        palette: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.tasks: List[Task] = list(tasks or ())
        self.window = window
        self.clock = clock or dt.date.today
        self.month_names = list(month_names) if month_names else None
        self.palette = palette
        self.grid: List[CalendarDay] = []
        self.state = NavigationState(current_date=clamp_to_window(self.today(), window))
        self._apply(self.state.current_date, CalendarView(view))

    def today(self) -> dt.date:
        return self.clock()

    @property
    def current_date(self) -> dt.date:
        return self.state.current_date

    @property
    def current_view(self) -> CalendarView:
        return self.state.current_view

    @property
    def selected_day(self) -> Optional[CalendarDay]:
        return self.state.selected_day

    # ---- Rebuilds ----
    def month_grid(self) -> List[CalendarDay]:
        d = self.state.current_date
        return build_month_grid(d.year, d.month, self.tasks, self.window, self.today(), self.palette)

    def week_grid(self) -> List[CalendarDay]:
        return build_week_grid(self.state.current_date, self.tasks, self.window, self.today(), self.palette)

    def day(self, value: Optional[dt.date] = None) -> CalendarDay:
        return build_day(value or self.state.current_date, self.tasks, self.window, self.today(), self.palette)

    def _apply(self, current_date: dt.date, view: CalendarView) -> None:
        selected = self.day(current_date) if view is CalendarView.DAY else None
        self.state = NavigationState(current_date=current_date, current_view=view, selected_day=selected)
        if view is CalendarView.MONTH:
            self.grid = self.month_grid()
        elif view is CalendarView.WEEK:
            self.grid = self.week_grid()
        else:
            self.grid = [selected]

    def rebuild(self) -> None:
        self._apply(self.state.current_date, self.state.current_view)

    def set_tasks(self, tasks: Iterable[Task]) -> None:
        self.tasks = list(tasks or ())
        self.rebuild()

    def set_window(self, window: Optional[BoundWindow]) -> None:
        self.window = window
        self._apply(clamp_to_window(self.state.current_date, window), self.state.current_view)

    # ---- Transitions ----
    def change_view(self, view: CalendarView) -> bool:
        self._apply(self.state.current_date, CalendarView(view))
        return True

    def can_navigate_previous(self) -> bool:
        return can_step_unit(PREVIOUS, self.state.current_date, self.state.current_view, self.window)

    def can_navigate_next(self) -> bool:
        return can_step_unit(NEXT, self.state.current_date, self.state.current_view, self.window)

    def _navigate(self, direction: int) -> bool:
        st = self.state
        if not can_step_unit(direction, st.current_date, st.current_view, self.window):
            logging.getLogger('task_calendar').debug(
                "Refused %s step from %s in %s view", 'previous' if direction == PREVIOUS else 'next',
                to_key(st.current_date), st.current_view.value)
            return False
        candidate = step_date(st.current_date, st.current_view, direction)
        self._apply(clamp_to_window(candidate, self.window), st.current_view)
        return True

    def navigate_previous(self) -> bool:
        return self._navigate(PREVIOUS)

    def navigate_next(self) -> bool:
        return self._navigate(NEXT)

    def jump_to(self, month: int, year: int) -> bool:
        """Show month (1-12) of year; refused when that month misses the window."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be 1..12, got {month!r}")
        target = dt.date(year, month, 1)
        if not unit_in_window(target, CalendarView.MONTH, self.window):
            return False
        self._apply(clamp_to_window(target, self.window), self.state.current_view)
        return True

    def go_today(self) -> bool:
        self._apply(clamp_to_window(self.today(), self.window), self.state.current_view)
        return True

    def focus_date(self, value: dt.date) -> bool:
        """Move to value in the current view; refused outside the window."""
        if not is_in_bounds(value, self.window):
            return False
        self._apply(value, self.state.current_view)
        return True

    def select_day(self, day) -> bool:
        """Focus a day (CalendarDay or date) and switch to the day view."""
        value = day.date if isinstance(day, CalendarDay) else day
        if not is_in_bounds(value, self.window):
            return False
        self._apply(value, CalendarView.DAY)
        return True

    # ---- Hour projections ----
    def events_for_hour(self, hour: int) -> List[CalendarEvent]:
        day = self.state.selected_day
        if day is None:
            return []
        return events_for_hour(day.events, day.date, hour)

    def events_for_day_hour(self, day: CalendarDay, hour: int) -> List[CalendarEvent]:
        return events_for_hour(day.events, day.date, hour)

    # ---- Pickers & labels ----
    def available_years(self) -> List[int]:
        years = available_years(self.window)
        if years:
            return years
        this_year = self.today().year
        return list(range(this_year - 2, this_year + 3))

    def available_months(self, year: Optional[int] = None) -> List[int]:
        if self.window is None:
            return list(range(1, 13))
        return available_months(year if year is not None else self.state.current_date.year, self.window)

    def month_year_label(self) -> str:
        return month_year_label(self.state.current_date, self.month_names)

    def week_range_label(self) -> str:
        return week_range_label(self.state.current_date)
