"""
Ordered, named transaction steps executed in one database transaction.

Each step is a callable receiving ``(db, changes)`` where ``changes`` holds the
results of every step that ran before it. The first step that raises aborts
the whole chain: the session is rolled back and the original exception is
re-raised with ``failed_step`` and ``changes`` attached. On success the
session is committed and ``changes`` returned so callers can make
post-commit decisions (notifications, cache touches).

Example:
    changes = (
        Multi()
        .put("site", site)
        .run("goal", lambda db, changes: load_goal(db, changes["site"]))
        .delete("delete_goal", lambda changes: changes["goal"])
        .execute(db)
    )
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from sitekeeper.core.errors import NotFoundError, ValidationError
from sitekeeper.core.logging import get_structured_logger


logger = get_structured_logger(__name__)

StepFn = Callable[[Session, dict[str, Any]], Any]


def _resolve(value, changes: dict[str, Any]):
    if callable(value):
        return value(changes)
    return value


class Multi:
    def __init__(self) -> None:
        self._steps: list[tuple[str, StepFn | None, Callable[[dict[str, Any]], "Multi"] | None]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _, _ in self._steps if name]

    def _add(self, name: str, fn: StepFn) -> "Multi":
        if name in self.names:
            raise ValueError(f"Step {name!r} is already part of this transaction")
        self._steps.append((name, fn, None))
        return self

    def put(self, name: str, value: Any) -> "Multi":
        return self._add(name, lambda db, changes: value)

    def run(self, name: str, fn: StepFn) -> "Multi":
        return self._add(name, fn)

    def insert(self, name: str, obj) -> "Multi":
        def _insert(db: Session, changes: dict[str, Any]):
            instance = _resolve(obj, changes)
            db.add(instance)
            db.flush()
            return instance

        return self._add(name, _insert)

    def update(self, name: str, obj) -> "Multi":
        def _update(db: Session, changes: dict[str, Any]):
            instance = _resolve(obj, changes)
            db.add(instance)
            db.flush()
            return instance

        return self._add(name, _update)

    insert_or_update = update

    def delete(self, name: str, obj) -> "Multi":
        def _delete(db: Session, changes: dict[str, Any]):
            instance = _resolve(obj, changes)
            db.delete(instance)
            db.flush()
            return instance

        return self._add(name, _delete)

    def delete_all(self, name: str, query_fn: Callable[[Session, dict[str, Any]], Any]) -> "Multi":
        def _delete_all(db: Session, changes: dict[str, Any]):
            query = query_fn(db, changes)
            return query.delete(synchronize_session="fetch")

        return self._add(name, _delete_all)

    def merge(self, builder: Callable[[dict[str, Any]], "Multi"]) -> "Multi":
        """Append steps decided at run time from the changes so far."""
        self._steps.append(("", None, builder))
        return self

    def append(self, other: "Multi") -> "Multi":
        for name, fn, builder in other._steps:
            if builder is not None:
                self.merge(builder)
            else:
                self._add(name, fn)
        return self

    def _run_steps(self, db: Session, changes: dict[str, Any]) -> None:
        for name, fn, builder in self._steps:
            if builder is not None:
                nested = builder(changes)
                if nested is not None:
                    nested._run_steps(db, changes)
                continue
            if name in changes:
                raise ValueError(f"Step {name!r} ran twice in one transaction")
            try:
                changes[name] = fn(db, changes)
            except Exception as exc:
                if not hasattr(exc, "failed_step"):
                    exc.failed_step = name
                raise

    def execute(self, db: Session) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        try:
            self._run_steps(db, changes)
            db.commit()
        except Exception as exc:
            db.rollback()
            exc.changes = changes
            # Validation and lookup failures are ordinary outcomes.
            level = logging.DEBUG if isinstance(exc, (NotFoundError, ValidationError)) else logging.INFO
            logger.log(
                level,
                "transaction.step_failed",
                extra={"step": getattr(exc, "failed_step", None), "error": type(exc).__name__},
            )
            raise
        return changes
