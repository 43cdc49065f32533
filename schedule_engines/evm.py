"""
Earned Value Management (EVM) Calculations -- Pure Functions.

All functions are pure: no I/O, no side effects, no database.
They compute EVM metrics from task state and baseline items.

Money is accumulated unrounded and quantized once per figure.  Ratios
(CPI, SPI) are floats and ``None`` when the denominator is zero.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from schedule_engines.timeline import minutes_between
from schedule_engines.tracer import traced_engine
from schedule_kernel.domain.baseline import BaselineItem
from schedule_kernel.domain.earned_value import EarnedValueMetrics
from schedule_kernel.domain.types import TaskSnapshot

DEFAULT_QUANTUM = Decimal("0.01")
_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def as_of_cutoff(as_of_date: date, reference: datetime | None = None) -> datetime:
    """Exclusive end of ``as_of_date``, in ``reference``'s timezone (if any)."""
    tzinfo = reference.tzinfo if reference is not None else None
    return datetime.combine(as_of_date + timedelta(days=1), time.min, tzinfo=tzinfo)


def elapsed_fraction(item: BaselineItem, as_of_date: date) -> Decimal:
    """Share of the baseline duration elapsed by the end of ``as_of_date``."""
    cutoff = as_of_cutoff(as_of_date, item.planned_start)
    if cutoff <= item.planned_start:
        return _ZERO
    if cutoff >= item.planned_end:
        return _ONE
    total = minutes_between(item.planned_start, item.planned_end)
    if total <= 0:
        return _ONE
    elapsed = minutes_between(item.planned_start, cutoff)
    return min(_ONE, max(_ZERO, Decimal(elapsed) / Decimal(total)))


def calculate_bac(tasks: Iterable[TaskSnapshot]) -> Decimal:
    """Budget at Completion = sum of budgeted cost."""
    return sum((t.budgeted_cost for t in tasks), _ZERO)


def calculate_planned_value(
    tasks: Iterable[TaskSnapshot],
    baseline_items: Mapping[str, BaselineItem],
    as_of_date: date,
) -> Decimal:
    """Planned Value (BCWS); tasks missing from the baseline contribute 0."""
    total = _ZERO
    for task in tasks:
        item = baseline_items.get(task.task_id)
        if item is None:
            continue
        total += task.budgeted_cost * elapsed_fraction(item, as_of_date)
    return total


def calculate_earned_value(tasks: Iterable[TaskSnapshot]) -> Decimal:
    """Earned Value (BCWP) = sum of budgeted cost x percent complete."""
    return sum(
        (t.budgeted_cost * Decimal(t.percent_complete) / _HUNDRED for t in tasks),
        _ZERO,
    )


def has_actual_activity(task: TaskSnapshot, as_of_date: date) -> bool:
    """
    Whether ``task`` shows actual work by the end of ``as_of_date``.

    A recorded actual start decides on its own.  Without one, booked cost
    or reported progress counts as activity.
    """
    if task.actual_start is not None:
        return task.actual_start < as_of_cutoff(as_of_date, task.actual_start)
    return task.actual_cost > 0 or task.percent_complete > 0


def calculate_actual_cost(tasks: Iterable[TaskSnapshot], as_of_date: date) -> Decimal:
    """Actual Cost (ACWP) of tasks with actual activity on/before ``as_of_date``."""
    return sum(
        (t.actual_cost for t in tasks if has_actual_activity(t, as_of_date)),
        _ZERO,
    )


def calculate_cpi(ev: Decimal, ac: Decimal) -> float | None:
    """Cost Performance Index = EV / AC. >1 = under budget."""
    if ac == 0:
        return None
    return float(ev / ac)


def calculate_spi(ev: Decimal, pv: Decimal) -> float | None:
    """Schedule Performance Index = EV / PV. >1 = ahead of schedule."""
    if pv == 0:
        return None
    return float(ev / pv)


def calculate_eac(bac: Decimal, ev: Decimal, ac: Decimal) -> Decimal:
    """
    Estimate at Completion.

    AC + (BAC - EV) / CPI when CPI is defined and nonzero, otherwise
    AC + (BAC - EV).  CPI is applied as the exact ratio EV / AC.
    """
    remaining = bac - ev
    if ac != 0 and ev != 0:
        return ac + remaining * ac / ev
    return ac + remaining


def calculate_etc(eac: Decimal, ac: Decimal) -> Decimal:
    """Estimate to Complete = EAC - AC."""
    return eac - ac


def calculate_vac(bac: Decimal, eac: Decimal) -> Decimal:
    """Variance at Completion = BAC - EAC."""
    return bac - eac


@traced_engine("evm", "1.0", fingerprint_fields=("as_of_date",))
def calculate_metrics(
    *,
    tasks: Iterable[TaskSnapshot],
    baseline_items: Iterable[BaselineItem],
    as_of_date: date,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> EarnedValueMetrics:
    """All EVM figures for live ``tasks`` against a baseline, as of a date."""
    live = [t for t in tasks if not t.is_deleted]
    items = {item.task_id: item for item in baseline_items}

    def q(value: Decimal) -> Decimal:
        return value.quantize(quantum)

    bac = q(calculate_bac(live))
    pv = q(calculate_planned_value(live, items, as_of_date))
    ev = q(calculate_earned_value(live))
    ac = q(calculate_actual_cost(live, as_of_date))
    eac = q(calculate_eac(bac, ev, ac))

    return EarnedValueMetrics(
        as_of_date=as_of_date,
        pv=pv,
        ev=ev,
        ac=ac,
        bac=bac,
        eac=eac,
        etc=q(calculate_etc(eac, ac)),
        vac=q(calculate_vac(bac, eac)),
        cv=ev - ac,
        sv=ev - pv,
        cpi=calculate_cpi(ev, ac),
        spi=calculate_spi(ev, pv),
    )
