"""Fee category master (Tuition, Meals, Transport, ...). Name is unique."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, Uuid

from app.db.session import Base


class FeeCategory(Base):
    __tablename__ = "fee_categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
