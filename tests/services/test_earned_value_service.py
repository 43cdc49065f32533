"""Tests for EarnedValueService persistence."""

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from schedule_kernel.domain.earned_value import EarnedValueMetrics
from schedule_kernel.models.earned_value import EarnedValueSnapshotModel
from schedule_kernel.services.earned_value_service import EarnedValueService


def _metrics(as_of: date, ev: str = "500.00", cpi: float | None = 1.25) -> EarnedValueMetrics:
    return EarnedValueMetrics(
        as_of_date=as_of,
        pv=Decimal("1000.00"),
        ev=Decimal(ev),
        ac=Decimal("400.00"),
        bac=Decimal("1000.00"),
        eac=Decimal("800.00"),
        etc=Decimal("400.00"),
        vac=Decimal("200.00"),
        cv=Decimal(ev) - Decimal("400.00"),
        sv=Decimal(ev) - Decimal("1000.00"),
        cpi=cpi,
        spi=0.5,
    )


class TestEarnedValueService:

    def test_store_and_read_back(self, session, scope, deterministic_clock):
        service = EarnedValueService(session, deterministic_clock)

        stored = service.store(scope, _metrics(date(2026, 3, 2)))
        loaded = service.get(scope.project_id, date(2026, 3, 2))

        assert loaded == stored
        assert loaded.metrics.ev == Decimal("500.00")
        assert loaded.metrics.cpi == 1.25
        assert loaded.scope == scope

    def test_null_indices_round_trip(self, session, scope, deterministic_clock):
        service = EarnedValueService(session, deterministic_clock)

        service.store(scope, _metrics(date(2026, 3, 2), cpi=None))

        assert service.get(scope.project_id, date(2026, 3, 2)).metrics.cpi is None

    def test_same_date_overwrites(self, session, scope, deterministic_clock, captured_logs):
        service = EarnedValueService(session, deterministic_clock)

        first = service.store(scope, _metrics(date(2026, 3, 2), ev="500.00"))
        second = service.store(scope, _metrics(date(2026, 3, 2), ev="650.00"))

        rows = session.execute(
            select(func.count()).select_from(EarnedValueSnapshotModel)
        ).scalar_one()
        assert rows == 1
        assert second.snapshot_id == first.snapshot_id
        assert service.get(scope.project_id, date(2026, 3, 2)).metrics.ev == Decimal("650.00")
        stored = [r for r in captured_logs() if r["message"] == "earned_value_snapshot_stored"]
        assert [r["overwritten"] for r in stored] == [False, True]

    def test_history_ordered_by_date(self, session, scope, deterministic_clock):
        service = EarnedValueService(session, deterministic_clock)
        for day in (5, 2, 3):
            service.store(scope, _metrics(date(2026, 3, day)))

        history = service.history(scope.project_id)

        assert [s.as_of_date for s in history] == [
            date(2026, 3, 2), date(2026, 3, 3), date(2026, 3, 5),
        ]

    def test_missing_snapshot(self, session, scope, deterministic_clock):
        assert EarnedValueService(session, deterministic_clock).get(
            scope.project_id, date(2026, 3, 2)
        ) is None
