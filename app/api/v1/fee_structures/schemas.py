from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.enums import FeeStructureApplyScope, Term


class FeeStructureApplyRequest(BaseModel):
    class_name: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=2000, le=3000)
    scope: FeeStructureApplyScope = FeeStructureApplyScope.all
    term: Optional[Term] = None
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _term_required_for_term_scope(self):
        if self.scope == FeeStructureApplyScope.term and self.term is None:
            raise ValueError("term is required when scope=term")
        return self


class FeeStructureApplyResponse(BaseModel):
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    locked: int = 0
