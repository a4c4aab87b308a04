from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    guardian_id is set for PARENT users and scopes which students they may act for.
    """

    id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]
    guardian_id: Optional[UUID] = None
