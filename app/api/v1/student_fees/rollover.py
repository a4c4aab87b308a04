"""
Rollover calculator: current-period balance with surplus carried forward from earlier periods.

Only past surplus carries forward; a past shortfall never reduces what counts as paid now.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from app.core.enums import TERM_ORDER, Term

# Rank of a term-less (yearly) line when null_term_as is None: before TERM1
_YEARLY_RANK = 0


@dataclass(frozen=True)
class LedgerLineSnapshot:
    amount_due: int
    amount_paid: int
    term: Optional[str]
    academic_year: Optional[int]
    created_at: Optional[datetime] = None

    @property
    def year(self) -> Optional[int]:
        if self.academic_year is not None:
            return self.academic_year
        return self.created_at.year if self.created_at is not None else None


@dataclass(frozen=True)
class RolloverSummary:
    total_due: int = 0
    total_paid_raw: int = 0
    past_credit: int = 0
    effective_paid: int = 0
    balance: int = 0
    rollover_forward: int = 0


def _effective_term(term: Optional[str], null_term_as: Optional[Term]) -> Optional[Term]:
    if term is not None:
        return Term(term)
    return null_term_as


def _rank(term: Optional[Term]) -> int:
    return TERM_ORDER[term] if term is not None else _YEARLY_RANK


def summarize(
    lines: Iterable[LedgerLineSnapshot],
    current_term: Optional[Term],
    as_of_year: int,
    null_term_as: Optional[Term] = Term.TERM1,
) -> RolloverSummary:
    """
    Partition lines into the current bucket (as_of_year, and current_term if given) and past
    buckets (earlier years, or the same year with an earlier term). Later years are ignored.
    """
    current: List[LedgerLineSnapshot] = []
    past: List[LedgerLineSnapshot] = []
    for line in lines:
        year = line.year
        if year is None or year > as_of_year:
            continue
        if current_term is None:
            if year == as_of_year:
                current.append(line)
            else:
                past.append(line)
            continue
        term = _effective_term(line.term, null_term_as)
        if year == as_of_year and term == current_term:
            current.append(line)
        elif year < as_of_year or _rank(term) < _rank(current_term):
            past.append(line)

    total_due = sum(line.amount_due for line in current)
    total_paid_raw = sum(line.amount_paid for line in current)
    past_credit = sum(max(line.amount_paid - line.amount_due, 0) for line in past)
    effective_paid = total_paid_raw + past_credit
    return RolloverSummary(
        total_due=total_due,
        total_paid_raw=total_paid_raw,
        past_credit=past_credit,
        effective_paid=effective_paid,
        balance=max(total_due - effective_paid, 0),
        rollover_forward=max(effective_paid - total_due, 0),
    )


def resolve_as_of_year(lines: List[LedgerLineSnapshot], current_term: Optional[Term]) -> Optional[int]:
    """Latest year among lines of current_term; else (or with no term) the latest year overall."""
    years = [line.year for line in lines if line.year is not None]
    if not years:
        return None
    if current_term is not None:
        same_term = [
            line.year for line in lines
            if line.year is not None and line.term == current_term.value
        ]
        if same_term:
            return max(same_term)
    return max(years)
