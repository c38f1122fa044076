import datetime as dt
import json
import logging
from types import SimpleNamespace

import pytest
import requests
from prompt_toolkit.input import DummyInput
from prompt_toolkit.keys import Keys
from prompt_toolkit.output import DummyOutput

import calendar_viewer as cv
import task_calendar as tc

from helpers import dummy_event, fragments_text, make_task


# ---- config ----
def test_load_config_reads_project_window(tmp_path):
    path = tmp_path / 'calendar.yml'
    path.write_text(
        "api_url: http://localhost:8080\n"
        "user_id: u-1\n"
        "project_id: 42\n"
        "project:\n"
        "  start_date: 2025-01-01\n"
        "  end_date: '2025-03-31'\n"
        "locale: pl\n"
        "view: Week\n",
        encoding='utf-8',
    )
    cfg = cv.load_config(str(path))
    assert cfg.project_id == '42'
    assert cfg.view == 'week'
    assert cfg.locale == 'pl'
    assert cfg.window() == tc.BoundWindow(dt.date(2025, 1, 1), dt.date(2025, 3, 31))


def test_load_config_without_project_has_no_window(tmp_path):
    path = tmp_path / 'calendar.yml'
    path.write_text("tasks_file: tasks.json\n", encoding='utf-8')
    cfg = cv.load_config(str(path))
    assert cfg.window() is None
    assert cfg.view == 'month'


@pytest.mark.parametrize('body, message', [
    ("project:\n  start_date: 2025-03-01\n  end_date: 2025-01-01\n", 'before it starts'),
    ("project:\n  end_date: 2025-01-01\n", 'needs'),
    ("project:\n  start_date: someday\n", 'YYYY-MM-DD'),
    ("view: year\n", 'unknown view'),
    ("api_url: http://x\n", "needs 'user_id'"),
    ("- just\n- a list\n", 'mapping'),
])
def test_load_config_rejects_bad_shapes(tmp_path, body, message):
    path = tmp_path / 'calendar.yml'
    path.write_text(body, encoding='utf-8')
    with pytest.raises(ValueError, match=message):
        cv.load_config(str(path))


# ---- locales ----
def test_locale_presets_load_and_skip_broken_files(tmp_path, caplog):
    (tmp_path / 'de.yml').write_text(
        "name: de\nmonth_names: [Januar, Februar, März, April, Mai, Juni, Juli, August, September, Oktober, November, Dezember]\n"
        "weekday_names: [Mo, Di, Mi, Do, Fr, Sa, So]\n",
        encoding='utf-8',
    )
    (tmp_path / 'short.yml').write_text("month_names: [Jan]\nweekday_names: [Mo]\n", encoding='utf-8')
    (tmp_path / 'broken.yaml').write_text("month_names: [unterminated\n", encoding='utf-8')
    with caplog.at_level(logging.WARNING, logger='calendar_viewer'):
        presets = cv._load_locale_presets(tmp_path)
    assert set(presets) == {'en', 'de'}
    assert presets['de'].month_names[2] == 'März'
    assert len(caplog.records) == 2

    assert cv.resolve_locale('DE', tmp_path).weekday_names[0] == 'Mo'
    assert cv.resolve_locale('xx', tmp_path) is cv.DEFAULT_LOCALE


def test_bundled_polish_locale():
    pl = cv.resolve_locale('pl')
    assert pl.month_names[0] == 'Styczeń'
    assert pl.weekday_names == ['Pon', 'Wt', 'Śr', 'Czw', 'Pt', 'Sob', 'Niedz']


# ---- task sources ----
def test_load_tasks_file_json_and_yaml(tmp_path):
    json_path = tmp_path / 'tasks.json'
    json_path.write_text(json.dumps([
        {'id': '1', 'name': 'Kickoff', 'startDate': '2025-01-02T10:00:00', 'priority': 'CRITICAL', 'status': 'TO_DO'},
    ]), encoding='utf-8')
    yaml_path = tmp_path / 'tasks.yml'
    yaml_path.write_text(
        "tasks:\n"
        "  - id: 2\n"
        "    name: Review\n"
        "    startDate: 2025-01-03\n"
        "    endDate: 2025-01-05\n",
        encoding='utf-8',
    )
    (kickoff,) = cv.load_tasks_file(str(json_path))
    assert kickoff.priority is tc.TaskPriority.CRITICAL
    (review,) = cv.load_tasks_file(str(yaml_path))
    assert review.id == '2'
    assert review.start_date == '2025-01-03'
    assert review.end_date == '2025-01-05'

    bad = tmp_path / 'bad.json'
    bad.write_text('{"items": []}', encoding='utf-8')
    with pytest.raises(ValueError):
        cv.load_tasks_file(str(bad))


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else []
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        return self.response


def test_fetch_user_and_project_tasks():
    payload = [{'id': 't1', 'name': 'Ship', 'startDate': '2025-01-10'}]
    session = DummySession(DummyResponse(payload=payload))
    cfg = cv.Config(api_url='http://api.local/', user_id='u-1')
    (task,) = cv.fetch_tasks(cfg, token='secret', session=session)
    assert task.name == 'Ship'
    assert session.calls == [('http://api.local/api/tasks/user/u-1', {'requestUserId': 'u-1'})]

    cfg.project_id = '42'
    cv.fetch_tasks(cfg, token=None, session=session)
    assert session.calls[-1] == ('http://api.local/api/tasks/project/42', {'userId': 'u-1'})


def test_fetch_tasks_raises_http_errors():
    session = DummySession(DummyResponse(status_code=401, payload={'error': 'unauthorized'}))
    cfg = cv.Config(api_url='http://api.local', user_id='u-1')
    with pytest.raises(requests.HTTPError):
        cv.fetch_tasks(cfg, token='expired', session=session)
    with pytest.raises(ValueError):
        cv.fetch_tasks(cv.Config(), token=None, session=session)


def test_session_sets_bearer_token():
    s = cv._session('abc')
    assert s.headers['Authorization'] == 'Bearer abc'
    assert 'Authorization' not in cv._session(None).headers


def test_load_tasks_precedence(tmp_path, monkeypatch):
    path = tmp_path / 'tasks.json'
    path.write_text(json.dumps([{'id': 'f', 'name': 'From file', 'startDate': '2025-01-01'}]), encoding='utf-8')
    monkeypatch.setattr(cv, 'fetch_tasks', lambda cfg, token: [make_task(id='api')])
    monkeypatch.delenv('MOCK_FETCH', raising=False)

    cfg = cv.Config(api_url='http://api.local', user_id='u-1')
    assert [t.id for t in cv.load_tasks(cfg, 'tok', str(path))] == ['f']
    assert [t.id for t in cv.load_tasks(cfg, 'tok')] == ['api']
    assert cv.load_tasks(cv.Config(), None) == []

    monkeypatch.setenv('MOCK_FETCH', '1')
    mock = cv.load_tasks(cv.Config(), None, today=dt.date(2025, 1, 15))
    assert len(mock) == 10
    assert all(tc.parse_moment(t.start_date) is not None for t in mock)


def test_dotenv_token(tmp_path, monkeypatch):
    (tmp_path / '.env').write_text("# comment\nOTHER=1\nTOKEN='from-env-file'\n", encoding='utf-8')
    monkeypatch.chdir(tmp_path)
    assert cv.load_dotenv_token() == 'from-env-file'


def test_configure_logging_honours_level(tmp_path):
    log_path = tmp_path / 'viewer.log'
    cv.configure_logging('warning', str(log_path))
    try:
        logging.getLogger('task_calendar').info('hidden')
        logging.getLogger('task_calendar').warning('shown')
        for h in logging.getLogger('task_calendar').handlers:
            h.flush()
        text = log_path.read_text(encoding='utf-8')
        assert 'shown' in text
        assert 'hidden' not in text
    finally:
        for name in ('calendar_viewer', 'task_calendar'):
            logger = logging.getLogger(name)
            for h in list(logger.handlers):
                logger.removeHandler(h)
                h.close()


# ---- rendering ----
@pytest.fixture
def q1_nav(clock, q1_window):
    tasks = [
        make_task(id='a', name='Kickoff', start_date='2025-01-15T10:00:00', end_date='2025-01-16T12:00:00',
                  priority='CRITICAL', status='IN_PROGRESS'),
        make_task(id='b', name='Retro', start_date='2025-01-17', end_date=None, priority='OPTIONAL', status='FINISHED'),
    ]
    return tc.ViewNavigator(tasks, window=q1_window, clock=clock)


def test_month_fragments(q1_nav):
    frags = cv.month_fragments(q1_nav, cv.DEFAULT_LOCALE, cursor=dt.date(2025, 1, 15))
    text = fragments_text(frags)
    assert text.startswith(' January 2025')
    assert 'Mon' in text and 'Sun' in text
    assert '◐ Kickoff →' in text
    assert '● Retro' in text
    styles = [style for style, _ in frags]
    assert 'class:calendar.cursor' in styles
    assert 'class:calendar.out' in styles  # leading December days
    assert 'fg:#ef4444' in styles


def test_week_fragments(q1_nav):
    q1_nav.change_view(tc.CalendarView.WEEK)
    frags = cv.week_fragments(q1_nav, cv.DEFAULT_LOCALE)
    text = fragments_text(frags)
    lines = text.split('\n')
    assert lines[0] == ' 13.01 - 19.01'
    assert len(lines) == 2 + 24
    assert lines[2 + 10].startswith('10:00')
    assert '▶ Kickoff' in lines[2 + 10]
    assert '└ Kickoff' in lines[2 + 12]
    assert 'Kickoff' not in lines[2 + 9]


def test_day_fragments(q1_nav):
    q1_nav.select_day(dt.date(2025, 1, 16))
    text = fragments_text(cv.day_fragments(q1_nav, cv.DEFAULT_LOCALE))
    lines = text.split('\n')
    assert lines[0] == ' Thu 16 January 2025'
    assert lines[1].startswith('0:00') and '┆ ◐ Kickoff' in lines[1]
    assert '┆ Kickoff' in lines[1 + 5]
    assert '└ ◐ Kickoff' in lines[1 + 12]
    assert 'Kickoff' not in lines[1 + 13]


def test_truncate_and_pad():
    assert cv._truncate('a\nb', 10) == 'a b'
    assert cv._truncate('abcdefgh', 5) == 'abcd…'
    assert cv._display_width(cv._pad_display('你好', 6)) == 6
    assert cv._pad_display('abc', 6) == 'abc   '
    assert cv.status_glyph(None) == '·'
    assert cv.status_glyph('TO_DO') == '○'


def test_render_summary(q1_nav):
    text = cv.render_summary(q1_nav, cv.DEFAULT_LOCALE)
    lines = text.split('\n')
    assert lines[0] == 'January 2025'
    assert ' 15*' in text
    assert 'Tasks: 2 (FINISHED 1, IN_PROGRESS 1)' in text
    assert lines[-1] == 'Project dates: 2025-01-01 .. 2025-03-31'


# ---- TUI ----
def _app(nav, refresh=None):
    return cv.build_app(nav, cv.DEFAULT_LOCALE, refresh, app_input=DummyInput(), app_output=DummyOutput())


def _press(app, *keys):
    (binding,) = app.key_bindings.get_bindings_for_keys(tuple(keys))
    binding.handler(dummy_event())


def test_tui_navigation_respects_bounds(q1_nav):
    app = _app(q1_nav)
    _press(app, 'p')
    assert app.ui_state.message == 'Outside project dates'
    assert q1_nav.current_date == dt.date(2025, 1, 15)

    _press(app, 'n')
    assert q1_nav.current_date == dt.date(2025, 2, 15)
    assert app.ui_state.cursor == dt.date(2025, 2, 15)
    assert app.ui_state.message == ''


def test_tui_cursor_and_day_selection(q1_nav):
    app = _app(q1_nav)
    _press(app, 'l')
    _press(app, 'j')
    assert app.ui_state.cursor == dt.date(2025, 1, 23)
    _press(app, Keys.Enter)
    assert q1_nav.current_view is tc.CalendarView.DAY
    assert q1_nav.current_date == dt.date(2025, 1, 23)

    _press(app, 'h')
    assert q1_nav.current_date == dt.date(2025, 1, 22)
    _press(app, Keys.Escape)
    assert q1_nav.current_view is tc.CalendarView.MONTH

    for _ in range(4):
        _press(app, 'k')
    # the fourth step would leave the visible grid
    assert app.ui_state.cursor == dt.date(2025, 1, 1)
    _press(app, 'h')
    assert app.ui_state.cursor == dt.date(2024, 12, 31)
    _press(app, Keys.Enter)
    assert app.ui_state.message == 'Outside project dates'
    assert q1_nav.current_view is tc.CalendarView.MONTH


def test_tui_week_view_draws_cursor(q1_nav):
    app = _app(q1_nav)
    _press(app, 'w')
    _press(app, 'l')
    assert app.ui_state.cursor == dt.date(2025, 1, 16)
    frags = cv.week_fragments(q1_nav, cv.DEFAULT_LOCALE, app.ui_state.cursor)
    (cursor_label,) = [text for style, text in frags if style == 'class:calendar.cursor']
    assert cursor_label.startswith('Thu 16.01')
    _press(app, Keys.Enter)
    assert q1_nav.selected_day.date == dt.date(2025, 1, 16)


def test_tui_views_and_today(q1_nav):
    app = _app(q1_nav)
    _press(app, 'w')
    assert q1_nav.current_view is tc.CalendarView.WEEK
    _press(app, ']')
    assert q1_nav.current_date == dt.date(2025, 1, 22)
    _press(app, 't')
    assert q1_nav.current_date == dt.date(2025, 1, 15)
    _press(app, 'd')
    assert q1_nav.selected_day.date == dt.date(2025, 1, 15)
    _press(app, 'm')
    assert len(q1_nav.grid) == 42


def test_tui_refresh(q1_nav):
    calls = []

    def refresh():
        calls.append(1)
        if len(calls) == 1:
            raise requests.ConnectionError('api down')
        return [make_task(id='new', start_date='2025-01-20')]

    app = _app(q1_nav, refresh)
    _press(app, 'r')
    assert app.ui_state.message.startswith('Refresh failed')
    assert len(q1_nav.tasks) == 2
    _press(app, 'r')
    assert app.ui_state.message == 'Loaded 1 tasks'
    assert [t.id for t in q1_nav.tasks] == ['new']

    no_source = _app(q1_nav)
    _press(no_source, 'r')
    assert no_source.ui_state.message == 'No task source to reload'


def test_tui_quit(q1_nav):
    app = _app(q1_nav)
    exited = []
    (binding,) = app.key_bindings.get_bindings_for_keys(('q',))
    binding.handler(dummy_event(app=SimpleNamespace(exit=lambda: exited.append(True))))
    assert exited == [True]


# ---- CLI ----
def test_main_no_ui_summary(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)
    path = tmp_path / 'tasks.json'
    path.write_text(json.dumps([{'id': '1', 'name': 'Plan', 'startDate': '2025-02-03', 'status': 'TO_DO'}]), encoding='utf-8')
    cv.main(['--tasks', str(path), '--project-start', '2025-01-01', '--project-end', '2025-03-31',
             '--date', '2025-02', '--no-ui'])
    out = capsys.readouterr().out
    assert out.startswith('February 2025')
    assert '  3*' in out
    assert 'Tasks: 1 (TO_DO 1)' in out


def test_main_reports_out_of_range_date(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)
    path = tmp_path / 'tasks.json'
    path.write_text('[]', encoding='utf-8')
    cv.main(['--tasks', str(path), '--project-start', '2025-01-01', '--project-end', '2025-03-31',
             '--date', '2026-01', '--no-ui'])
    captured = capsys.readouterr()
    assert 'outside the project dates' in captured.err


def test_main_rejects_bad_window(monkeypatch, capsys):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)
    with pytest.raises(SystemExit) as exc:
        cv.main(['--project-start', '2025-03-01', '--project-end', '2025-01-01', '--no-ui'])
    assert exc.value.code == 2
    assert 'Invalid configuration' in capsys.readouterr().err


def test_main_reports_fetch_failure(monkeypatch, capsys):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)

    def boom(cfg, token, tasks_path=None, today=None):
        raise requests.ConnectionError('refused')

    monkeypatch.setattr(cv, 'load_tasks', boom)
    with pytest.raises(SystemExit) as exc:
        cv.main(['--no-ui'])
    assert exc.value.code == 1
    assert 'Failed to fetch tasks' in capsys.readouterr().err


@pytest.mark.parametrize('view', ['month', 'week', 'day'])
def test_main_opens_on_requested_day(monkeypatch, view):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)
    monkeypatch.setattr(cv, 'load_tasks', lambda cfg, token, tasks_path=None, today=None: [])
    opened = []
    monkeypatch.setattr(cv, 'run_ui', lambda nav, locale, refresh=None: opened.append(nav))
    cv.main(['--view', view, '--date', '2025-06-18'])
    (nav,) = opened
    assert nav.current_view is tc.CalendarView(view)
    assert nav.current_date == dt.date(2025, 6, 18)
    if view == 'week':
        assert [d.date for d in nav.grid] == [dt.date(2025, 6, 16) + dt.timedelta(days=i) for i in range(7)]


def test_main_reports_day_outside_partial_month(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cv, 'configure_logging', lambda *a, **k: None)
    monkeypatch.setattr(cv, 'load_tasks', lambda cfg, token, tasks_path=None, today=None: [])
    cv.main(['--project-start', '2025-01-20', '--date', '2025-01-05', '--no-ui'])
    captured = capsys.readouterr()
    assert 'outside the project dates' in captured.err
    assert captured.out.startswith('January 2025')
