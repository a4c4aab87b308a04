"""
Resolve a payer MSISDN to a student.

Numbers are normalized to 2547XXXXXXXX form. Lookup matches the last 9 digits against guardian
phones (-> their students), student phones and learned aliases, which tolerates stored numbers
written as 07..., +254... or 254.... Two records sharing the same 9-digit suffix resolve to
MULTIPLE_STUDENTS rather than a guess.
"""

import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.hooks import Hook
from app.core.logging_config import get_logger
from app.core.repositories import StudentDirectory

logger = get_logger("mpesa.phone_resolver")

COUNTRY_CODE = "254"
SUFFIX_LENGTH = 9

_NON_DIGITS = re.compile(r"\D")


def normalize_msisdn(raw: Optional[str]) -> Optional[str]:
    """Return the canonical 254XXXXXXXXX form, or None for unrecognized formats."""
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", str(raw))
    if digits.startswith(COUNTRY_CODE) and len(digits) == len(COUNTRY_CODE) + SUFFIX_LENGTH:
        return digits
    if digits.startswith("0") and len(digits) == SUFFIX_LENGTH + 1:
        return COUNTRY_CODE + digits[1:]
    if len(digits) == SUFFIX_LENGTH:
        return COUNTRY_CODE + digits
    return None


def phone_suffix(normalized: str) -> str:
    return normalized[-SUFFIX_LENGTH:]


@dataclass(frozen=True)
class StudentPhoneMatch:
    unique_student_id: Optional[UUID]
    match_count: int

    @property
    def is_unique(self) -> bool:
        return self.unique_student_id is not None


async def find_student_by_phone(db: AsyncSession, normalized: str) -> StudentPhoneMatch:
    ids = await StudentDirectory(db).student_ids_by_phone_suffix(phone_suffix(normalized))
    if len(ids) == 1:
        return StudentPhoneMatch(unique_student_id=ids[0], match_count=1)
    return StudentPhoneMatch(unique_student_id=None, match_count=len(ids))


async def ensure_phone_alias(db: AsyncSession, student_id: UUID, normalized: str) -> bool:
    """Persist a learned (student, phone) alias if missing. Returns True when one was created."""
    directory = StudentDirectory(db)
    if await directory.has_phone_alias(student_id, normalized):
        return False
    directory.add_phone_alias(student_id, normalized)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent notification learned the same alias first
        await db.rollback()
        return False
    logger.info("phone_alias_learned", extra={"student_id": student_id, "phone_suffix": phone_suffix(normalized)})
    return True


def phone_alias_hook(student_id: UUID, normalized: str) -> Hook:
    async def _learn(db: AsyncSession) -> None:
        await ensure_phone_alias(db, student_id, normalized)

    return _learn
