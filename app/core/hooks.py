"""
Post-commit hooks: best-effort side effects (phone alias learning, audit rows) that run only after
the primary unit of work has committed, each in its own short transaction.
"""

from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import get_logger
from app.core.models import FeeAuditLog

logger = get_logger("core.hooks")

Hook = Callable[[AsyncSession], Awaitable[None]]


class PostCommitHooks:
    """Collects named hooks during a unit of work and runs them once it has committed."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db
        self._hooks: List[Tuple[str, Hook]] = []

    def add(self, name: str, hook: Hook) -> None:
        self._hooks.append((name, hook))

    def discard(self) -> None:
        """Drop collected hooks; called when the primary unit of work rolled back."""
        self._hooks.clear()

    async def run(self, reload: Sequence[Any] = ()) -> None:
        """
        Run and clear the collected hooks.

        reload: instances the caller still reads afterwards; a failed hook's rollback expires them,
        so they are refreshed when that happens.
        """
        hooks, self._hooks = self._hooks, []
        rolled_back = False
        for name, hook in hooks:
            try:
                await hook(self._db)
                await self._db.commit()
            except Exception:
                # Primary transaction is already committed
                await self._db.rollback()
                rolled_back = True
                logger.exception("post_commit_hook_failed", extra={"hook": name})
        if rolled_back:
            for instance in reload:
                await self._db.refresh(instance)


def fee_audit_hook(
    reference_table: str,
    reference_id: Any,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID] = None,
    reason: Optional[str] = None,
) -> Hook:
    async def _write(db: AsyncSession) -> None:
        db.add(
            FeeAuditLog(
                reference_table=reference_table,
                reference_id=str(reference_id),
                action_type=action_type,
                old_value=old_value,
                new_value=new_value,
                changed_by=changed_by,
                reason=reason,
            )
        )

    return _write
