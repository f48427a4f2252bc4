"""
Document model.

Every entity (account, transaction, debt, template, run lock,
invite code, profile, budget, goal) is one row: a slash
separated path, the collection it belongs to, and a JSON
body. The version column is SQLAlchemy's version_id_col, so
an UPDATE against a row someone else changed since it was
loaded fails with StaleDataError instead of overwriting.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column

from fincontrol.models.base import Base


class Document(Base):
    __tablename__ = "documents"

    path: Mapped[str] = mapped_column(String(512), primary_key=True)
    collection: Mapped[str] = mapped_column(
        String(512), nullable=False, index=True
    )
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Document {self.path} v{self.version}>"
