# Overview: Transaction boundaries and row locking for every ledger-mutating operation.

"""
Unit of work

Every mutation in the core runs inside exactly one `unit_of_work()`:
- the body performs its reads (locked), writes and flushes,
- a clean exit commits once; any exception rolls back everything,
- `on_commit` callbacks (notifications) run only after the commit succeeded.

Service functions come in pairs: a private `_xxx_inner()` that does the work
without committing, and the public `xxx()` that wraps it in a unit of work.
Cross-aggregate operations (fulfillment) call several inner functions inside a
single unit of work so they commit or fail together.

No retries here: StorageError is surfaced to the caller, who owns retry policy.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import DomainError, StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; version_id columns still
    catch concurrent writers there (StaleDataError -> StorageError).
    """
    return query.with_for_update()


class UnitOfWork:
    """Collects post-commit callbacks for one transaction."""

    def __init__(self, operation: str):
        self.operation = operation
        self._after_commit: list[tuple[Callable, tuple, dict]] = []

    def on_commit(self, func: Callable, *args, **kwargs) -> None:
        self._after_commit.append((func, args, kwargs))

    def _run_after_commit(self) -> None:
        for func, args, kwargs in self._after_commit:
            try:
                func(*args, **kwargs)
            except Exception:
                # Post-commit side effects are best-effort; the transaction already stands.
                current_app.logger.exception(
                    "Post-commit callback %s failed after %s", getattr(func, "__name__", func), self.operation
                )


@contextmanager
def unit_of_work(operation: str, **context) -> Iterator[UnitOfWork]:
    """
    Run the enclosed block as one atomic transaction.

    `context` is only used for logging storage failures.
    """
    uow = UnitOfWork(operation)
    try:
        yield uow
        db.session.commit()
    except DomainError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.error(
            "Concurrent modification during %s (context=%r): %s", operation, context, exc
        )
        raise StorageError(f"stale data during {operation}: {exc}") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Storage failure during %s (context=%r)", operation, context)
        raise StorageError(f"{type(exc).__name__} during {operation}") from exc
    except Exception:
        db.session.rollback()
        raise

    uow._run_after_commit()
