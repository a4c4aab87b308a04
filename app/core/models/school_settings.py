"""Singleton school settings row: the current term and academic year."""

from sqlalchemy import Column, Integer, String

from app.db.session import Base


class SchoolSettings(Base):
    __tablename__ = "school_settings"

    id = Column(Integer, primary_key=True, default=1)
    current_academic_year = Column(Integer, nullable=False)
    current_term = Column(String(10), nullable=False, default="TERM1")  # TERM1, TERM2, TERM3
