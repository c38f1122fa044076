from types import SimpleNamespace

import task_calendar as tc


def make_task(**overrides) -> tc.Task:
    base = dict(
        id='task-1',
        name='Write report',
        description='Quarterly numbers',
        start_date='2025-06-10',
        end_date='2025-06-12',
        priority='IMPORTANT',
        status='TO_DO',
        project_id='proj-1',
    )
    base.update(overrides)
    return tc.Task(**base)


def dummy_event(app=None):
    return SimpleNamespace(app=app or SimpleNamespace(exit=lambda: None))


def fragments_text(fragments) -> str:
    return "".join(text for _, text in fragments)
