"""SQLAlchemy models: the key-value record table backing the record store."""
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from transplantflow.database import Base


class Record(Base):
    __tablename__ = "records"

    # e.g. "transplantflow_patients", "transplantflow_workflows:p001"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[dict | list | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
