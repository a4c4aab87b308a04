"""
Repositories: small, explicit query surfaces per aggregate (ledger lines, payments, journal rows)
plus the student directory lookups used by phone/reference matching.

Repositories never commit; the caller owns the unit of work.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import MpesaTransactionStatus, OUTSTANDING_STATUSES
from app.core.models import (
    FeeCategory,
    Guardian,
    MpesaTransaction,
    Payment,
    Student,
    StudentFee,
    StudentPhoneAlias,
)


class StudentFeeRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, student_fee_id: UUID) -> Optional[StudentFee]:
        return await self.db.get(StudentFee, student_fee_id)

    async def get_for_update(self, student_fee_id: UUID) -> Optional[StudentFee]:
        """Load the line holding a row lock until the current transaction ends."""
        result = await self.db.execute(
            select(StudentFee)
            .where(StudentFee.id == student_fee_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_line(
        self,
        student_id: UUID,
        fee_category_id: UUID,
        term: Optional[str],
        academic_year: int,
        for_update: bool = False,
    ) -> Optional[StudentFee]:
        stmt = select(StudentFee).where(
            StudentFee.student_id == student_id,
            StudentFee.fee_category_id == fee_category_id,
            StudentFee.academic_year == academic_year,
            StudentFee.term.is_(None) if term is None else StudentFee.term == term,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def oldest_outstanding(
        self,
        student_id: UUID,
        fee_category_id: Optional[UUID] = None,
        exclude_category_id: Optional[UUID] = None,
    ) -> Optional[StudentFee]:
        """Oldest unpaid/partially paid line: due date ascending (nulls last), then creation time."""
        stmt = select(StudentFee).where(
            StudentFee.student_id == student_id,
            StudentFee.status.in_(OUTSTANDING_STATUSES),
        )
        if fee_category_id is not None:
            stmt = stmt.where(StudentFee.fee_category_id == fee_category_id)
        if exclude_category_id is not None:
            stmt = stmt.where(
                (StudentFee.fee_category_id.is_(None)) | (StudentFee.fee_category_id != exclude_category_id)
            )
        stmt = stmt.order_by(
            StudentFee.due_date.is_(None),
            StudentFee.due_date.asc(),
            StudentFee.created_at.asc(),
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def current_period(
        self,
        student_id: UUID,
        fee_category_id: UUID,
        academic_year: int,
        term: str,
    ) -> Optional[StudentFee]:
        result = await self.db.execute(
            select(StudentFee)
            .where(
                StudentFee.student_id == student_id,
                StudentFee.fee_category_id == fee_category_id,
                StudentFee.academic_year == academic_year,
                StudentFee.term == term,
            )
            .order_by(StudentFee.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_student(self, student_id: UUID) -> List[StudentFee]:
        result = await self.db.execute(
            select(StudentFee)
            .where(StudentFee.student_id == student_id)
            .order_by(
                StudentFee.academic_year.asc(),
                StudentFee.term.asc(),
                StudentFee.created_at.asc(),
            )
        )
        return list(result.scalars().all())

    def add(self, student_fee: StudentFee) -> None:
        self.db.add(student_fee)


class PaymentRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_client_request_id(self, client_request_id: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.client_request_id == client_request_id)
        )
        return result.scalar_one_or_none()

    async def list_for_student_fee(self, student_fee_id: UUID) -> List[Payment]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.student_fee_id == student_fee_id)
            .order_by(Payment.paid_at.desc())
        )
        return list(result.scalars().all())

    def add(self, payment: Payment) -> None:
        self.db.add(payment)


class MpesaTransactionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_for_update(self, transaction_id: UUID) -> Optional[MpesaTransaction]:
        result = await self.db.execute(
            select(MpesaTransaction)
            .where(MpesaTransaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_receipt(self, receipt_number: str) -> Optional[MpesaTransaction]:
        result = await self.db.execute(
            select(MpesaTransaction).where(MpesaTransaction.mpesa_receipt_number == receipt_number)
        )
        return result.scalar_one_or_none()

    async def list_pending(self, take: int) -> List[MpesaTransaction]:
        result = await self.db.execute(
            select(MpesaTransaction)
            .where(MpesaTransaction.status == MpesaTransactionStatus.PENDING.value)
            .order_by(MpesaTransaction.created_at.desc())
            .limit(take)
        )
        return list(result.scalars().all())

    def add(self, transaction: MpesaTransaction) -> None:
        self.db.add(transaction)


class StudentDirectory:
    """Read access to students, guardians, learned phone aliases and fee categories."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def student_ids_by_phone_suffix(self, suffix: str) -> Sequence[UUID]:
        """Distinct student ids reachable from a phone suffix via guardian, own phone or alias."""
        pattern = f"%{suffix}"
        from_guardians = await self.db.execute(
            select(Student.id)
            .join(Guardian, Student.guardian_id == Guardian.id)
            .where(Guardian.phone.like(pattern))
        )
        from_students = await self.db.execute(
            select(Student.id).where(Student.phone.like(pattern))
        )
        from_aliases = await self.db.execute(
            select(StudentPhoneAlias.student_id).where(StudentPhoneAlias.phone_number.like(pattern))
        )
        ids = set(from_guardians.scalars().all())
        ids.update(from_students.scalars().all())
        ids.update(from_aliases.scalars().all())
        return sorted(ids, key=str)

    async def get_student(self, student_id: UUID) -> Optional[Student]:
        return await self.db.get(Student, student_id)

    async def get_student_by_username(self, username: str) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.username == username))
        return result.scalar_one_or_none()

    async def get_category_by_name(self, name: str) -> Optional[FeeCategory]:
        result = await self.db.execute(select(FeeCategory).where(FeeCategory.name == name))
        return result.scalar_one_or_none()

    async def has_phone_alias(self, student_id: UUID, phone_number: str) -> bool:
        result = await self.db.execute(
            select(StudentPhoneAlias.id).where(
                StudentPhoneAlias.student_id == student_id,
                StudentPhoneAlias.phone_number == phone_number,
            )
        )
        return result.first() is not None

    def add_phone_alias(self, student_id: UUID, phone_number: str) -> StudentPhoneAlias:
        alias = StudentPhoneAlias(student_id=student_id, phone_number=phone_number)
        self.db.add(alias)
        return alias
