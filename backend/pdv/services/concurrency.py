# Overview: Conditional-write helpers; every state transition goes through one guarded UPDATE.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError
from ..extensions import db


def compare_and_set(model, pk: int, *, expected: dict, values: dict) -> bool:
    """
    UPDATE model SET values WHERE id = pk AND <expected columns match>.

    Returns True when exactly one row changed. The row's version_id is bumped
    alongside the change when the model carries one, and any copy of the row
    already loaded in this session is expired so later reads see the new state.

    NOTE: This is the only race-safe way to move a row between states; never
    read-check-then-write a status column.
    """
    criteria = [model.id == pk]
    criteria.extend(getattr(model, column) == value for column, value in expected.items())

    new_values = dict(values)
    if hasattr(model, "version_id"):
        new_values["version_id"] = model.version_id + 1

    result = db.session.execute(
        update(model)
        .where(*criteria)
        .values(**new_values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    expire_loaded(model, pk)
    return True


def expire_loaded(model, pk: int) -> None:
    """Expire the in-session copy of a row, if one is loaded."""
    instance = db.session.identity_map.get(Session.identity_key(model, pk))
    if instance is not None:
        db.session.expire(instance)


@contextmanager
def unique_guard(message: str):
    """
    Translate a unique-index violation raised inside the block into a
    ConflictError. Used where a partial unique index is the last line of
    defense against concurrent inserts (single open register, one open
    shift per operator, one open session per table).
    """
    try:
        yield
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)
