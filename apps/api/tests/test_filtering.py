from __future__ import annotations

from taskflow.filtering import filter_tasks, task_matches
from taskflow.records import TaskRecord
from taskflow.workflow import status_for_column


def _task(title: str, description: str | None = None, tags: list[str] | None = None) -> TaskRecord:
  return TaskRecord(id=title, column_id="c", user_id="u", title=title, position=0, description=description, tags=tags or [])


def test_empty_query_matches_everything() -> None:
  tasks = [_task("a"), _task("b")]
  assert filter_tasks(tasks, "") == tasks
  assert filter_tasks(tasks, None) == tasks
  assert filter_tasks(tasks, "   ") == []


def test_matches_title_description_and_tags_case_insensitively() -> None:
  assert task_matches(_task("Deploy API"), "api")
  assert task_matches(_task("x", description="Talk to Finance"), "FINANCE")
  assert task_matches(_task("x", tags=["Urgent"]), "urg")
  assert not task_matches(_task("x", description=None, tags=[]), "y")


def test_filter_preserves_order() -> None:
  tasks = [_task("bug one"), _task("feature"), _task("bug two")]
  assert [t.title for t in filter_tasks(tasks, "bug")] == ["bug one", "bug two"]


def test_status_for_column() -> None:
  assert status_for_column("done") == "done"
  assert status_for_column("in-progress") == "in-progress"
  assert status_for_column("3f1c-uuid", "review") == "review"
  assert status_for_column("3f1c-uuid") is None
  assert status_for_column("3f1c-uuid", "blocked") is None


def test_search_by_title_or_tag() -> None:
  tasks = [_task("Fix login bug", tags=["backend"]), _task("Design page", tags=["ui"])]
  assert [t.title for t in filter_tasks(tasks, "login")] == ["Fix login bug"]
  assert [t.title for t in filter_tasks(tasks, "UI")] == ["Design page"]


def test_query_is_not_trimmed() -> None:
  tasks = [_task("Fix login bug"), _task("Fix login page")]
  assert filter_tasks(tasks, "bug ") == []
  assert [t.title for t in filter_tasks(tasks, "login ")] == ["Fix login bug", "Fix login page"]
  assert [t.title for t in filter_tasks(tasks, " bug")] == ["Fix login bug"]
