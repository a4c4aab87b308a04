"""Fee structures service: (re)apply a class's catalog amounts to its students' ledger lines."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeeStructureApplyScope, Term
from app.core.hooks import PostCommitHooks, fee_audit_hook
from app.core.ledger import apply_structure_change
from app.core.logging_config import get_logger
from app.core.models import ClassFeeStructure, Student, StudentFee
from app.core.repositories import StudentFeeRepository

from .schemas import FeeStructureApplyRequest, FeeStructureApplyResponse

logger = get_logger("fee_structures.service")


def _in_scope(structure: ClassFeeStructure, scope: FeeStructureApplyScope, term: Optional[Term]) -> bool:
    if scope == FeeStructureApplyScope.all:
        return True
    if structure.term is None:
        # Yearly fees are applied under TERM1
        return term == Term.TERM1
    return structure.term == term.value


async def _structures_for(
    db: AsyncSession, class_name: str, year: int, scope: FeeStructureApplyScope, term: Optional[Term]
) -> List[ClassFeeStructure]:
    result = await db.execute(
        select(ClassFeeStructure)
        .where(ClassFeeStructure.class_name == class_name, ClassFeeStructure.academic_year == year)
        .order_by(ClassFeeStructure.created_at.asc())
    )
    return [s for s in result.scalars().all() if _in_scope(s, scope, term)]


async def _student_ids_in_class(db: AsyncSession, class_name: str) -> List[UUID]:
    result = await db.execute(select(Student.id).where(Student.class_name == class_name))
    return list(result.scalars().all())


async def apply_fee_structures(
    db: AsyncSession,
    payload: FeeStructureApplyRequest,
    changed_by: Optional[UUID] = None,
) -> FeeStructureApplyResponse:
    lines = StudentFeeRepository(db)
    counts = FeeStructureApplyResponse()

    structures = await _structures_for(db, payload.class_name, payload.year, payload.scope, payload.term)
    student_ids = await _student_ids_in_class(db, payload.class_name)

    for student_id in student_ids:
        for structure in structures:
            target_term = structure.term or Term.TERM1.value
            existing = await lines.find_line(
                student_id, structure.fee_category_id, target_term, payload.year, for_update=True
            )
            change = apply_structure_change(existing, structure.amount)

            if existing is None:
                lines.add(
                    StudentFee(
                        student_id=student_id,
                        fee_category_id=structure.fee_category_id,
                        term=target_term,
                        academic_year=payload.year,
                        base_amount=structure.amount,
                        amount_due=change.amount_due,
                        amount_paid=0,
                        locked=False,
                        status=change.status.value,
                        source_structure_id=structure.id,
                        due_date=structure.due_date,
                    )
                )
                counts.created += 1
                continue

            existing.source_structure_id = structure.id
            if existing.locked:
                counts.locked += 1
                continue
            if not change.changed:
                counts.unchanged += 1
                continue
            existing.base_amount = structure.amount
            existing.amount_due = change.amount_due
            existing.locked = change.locked
            existing.status = change.status.value
            if change.locked:
                counts.locked += 1
            else:
                counts.updated += 1

    hooks = PostCommitHooks(db)
    hooks.add(
        "fee_audit_structure_apply",
        fee_audit_hook(
            "fee_structure_apply",
            f"{payload.class_name}:{payload.year}:{payload.scope.value}:{payload.term.value if payload.term else '-'}",
            "APPLY",
            None,
            {
                "class_name": payload.class_name,
                "year": payload.year,
                "scope": payload.scope.value,
                "term": payload.term.value if payload.term else None,
                **counts.model_dump(),
            },
            changed_by,
            payload.reason,
        ),
    )
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        hooks.discard()
        raise
    await hooks.run()

    logger.info(
        "fee_structures_applied",
        extra={
            "class_name": payload.class_name,
            "year": payload.year,
            "scope": payload.scope.value,
            "structure_count": len(structures),
            "student_count": len(student_ids),
            "counts": counts.model_dump(),
        },
    )
    return counts
