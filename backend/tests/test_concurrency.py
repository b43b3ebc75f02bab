"""
Concurrency tests.

Verifies:
- Losing the open-shift race on the partial unique index is a conflict
- A stale versioned write is retried from a fresh load
- A stale write that outlives the retry budget surfaces as a conflict
  and leaves nothing behind
"""

from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from retailcore.extensions import db
from retailcore.models import Shift
from retailcore.services import shift_service
from retailcore.services.concurrency import run_with_retry
from retailcore.validation import ConcurrencyConflictError, StateConflictError

from .conftest import BRANCH_ID


D = Decimal


def bump_version_behind_session(shift_id):
    """Another writer commits a new version the loaded object has not seen."""
    db.session.execute(
        update(Shift)
        .where(Shift.id == shift_id)
        .values(version_id=Shift.version_id + 1)
        .execution_options(synchronize_session=False)
    )


class TestOpenShiftRace:
    def test_unique_index_rejects_second_active_shift(self, db_session, cashier, monkeypatch):
        shift_service.open_shift(cashier_id=cashier.id, branch_id=BRANCH_ID, starting_balance=0)

        # Both requests passed the check before either committed
        monkeypatch.setattr(shift_service, "get_active_shift", lambda *args, **kwargs: None)
        with pytest.raises(StateConflictError):
            shift_service.open_shift(cashier_id=cashier.id, branch_id=BRANCH_ID, starting_balance=0)

        assert db_session.query(Shift).filter_by(status="active").count() == 1


class TestStaleWrite:
    def test_retry_reloads_and_succeeds(self, db_session, cashier):
        shift_id = shift_service.open_shift(cashier_id=cashier.id, branch_id=BRANCH_ID, starting_balance=0).id
        calls = []

        def _op():
            calls.append(1)
            shift = db.session.get(Shift, shift_id)
            seen_version = shift.version_id
            if len(calls) == 1:
                bump_version_behind_session(shift_id)
            shift.notes = f"checked at version {seen_version}"
            db.session.commit()
            return shift

        shift = run_with_retry(_op, attempts=2, backoff_base=0)
        assert len(calls) == 2
        assert shift.notes == "checked at version 1"
        assert shift.version_id == 2

    def test_budget_exhausted_is_conflict(self, db_session, cashier):
        shift_id = shift_service.open_shift(cashier_id=cashier.id, branch_id=BRANCH_ID, starting_balance=0).id
        calls = []

        def _op():
            calls.append(1)
            shift = db.session.get(Shift, shift_id)
            bump_version_behind_session(shift_id)
            shift.notes = "lost update"
            db.session.commit()

        with pytest.raises(ConcurrencyConflictError) as exc:
            run_with_retry(_op, attempts=3, backoff_base=0)
        assert isinstance(exc.value.__cause__, StaleDataError)
        assert len(calls) == 3

        shift = db_session.get(Shift, shift_id)
        assert shift.notes is None
        assert shift.version_id == 1

    def test_other_errors_are_not_retried(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise StateConflictError("not a concurrency problem")

        with pytest.raises(StateConflictError):
            run_with_retry(_op, attempts=3, backoff_base=0)
        assert len(calls) == 1
