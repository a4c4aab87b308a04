from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import Term
from app.core.models import SchoolSettings


@dataclass(frozen=True)
class CurrentPeriod:
    academic_year: int
    term: str


async def get_current_period(db: AsyncSession) -> CurrentPeriod:
    """Current term/year from school settings; falls back to this calendar year, TERM1."""
    row = await db.get(SchoolSettings, 1)
    if row is None:
        return CurrentPeriod(academic_year=datetime.now(timezone.utc).year, term=Term.TERM1.value)
    term = row.current_term if row.current_term in {t.value for t in Term} else Term.TERM1.value
    return CurrentPeriod(academic_year=row.current_academic_year, term=term)


def to_minor_units(amount: Any) -> int:
    """Major-unit amount (str, int, float or Decimal) to integer minor units, half-up. Non-finite -> 0."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        return 0
    if not value.is_finite():
        return 0
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
