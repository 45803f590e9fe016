# tests/fakes.py

from __future__ import annotations

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from crudbasico.exceptions import StoreError
from crudbasico.schemas import Task


class InMemoryTaskStore:
    """
    Dict-backed stand-in for crudbasico.database.TaskStore.

    - Same method surface as the BigQuery store
    - created_at strictly increases so ordering is deterministic
    - fail_with makes every call raise StoreError(message)
    """

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self.connected = True
        self.fail_with: str | None = None
        self._clock = itertools.count()
        self._epoch = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _check(self) -> None:
        if self.fail_with:
            raise StoreError(self.fail_with)

    def create(self, fields: dict[str, Any]) -> Task:
        self._check()
        task = Task(
            id=str(uuid.uuid4()),
            title=fields["title"],
            description=fields.get("description", ""),
            priority=fields.get("priority", "medium"),
            status=fields.get("status", "pending"),
            due_date=fields.get("due_date"),
            created_at=self._epoch + timedelta(seconds=next(self._clock)),
        )
        self.tasks[task.id] = task
        return task

    def find(self, search=None, status=None, priority=None) -> list[Task]:
        self._check()
        found = []
        for task in self.tasks.values():
            if search:
                needle = search.lower()
                if needle not in task.title.lower() and needle not in task.description.lower():
                    continue
            if status and task.status != status:
                continue
            if priority and task.priority != priority:
                continue
            found.append(task)
        return sorted(found, key=lambda t: t.created_at, reverse=True)

    def find_by_id(self, task_id: str) -> Task | None:
        self._check()
        return self.tasks.get(task_id)

    def update_by_id(self, task_id: str, updates: dict[str, Any]) -> Task | None:
        self._check()
        task = self.tasks.get(task_id)
        if task is None:
            return None
        updated = task.model_copy(update=updates)
        self.tasks[task_id] = updated
        return updated

    def delete_by_id(self, task_id: str) -> bool:
        self._check()
        return self.tasks.pop(task_id, None) is not None

    def count(self, status=None) -> int:
        self._check()
        return len([t for t in self.tasks.values() if status is None or t.status == status])

    def ping(self) -> bool:
        return self.connected
