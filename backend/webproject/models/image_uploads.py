from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Index, func
from sqlalchemy.orm import Mapped, mapped_column

from webproject.db.base import Base

FILE_NAME_MAX_LENGTH = 255


class ImageUpload(Base):
    __tablename__ = "image_uploads"
    __table_args__ = (Index("idx_file_name", "file_name"),)

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    # must equal the object key in the bucket
    file_name: Mapped[str] = mapped_column(sa.String(FILE_NAME_MAX_LENGTH), unique=True, nullable=False)
    file_size: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    file_extension: Mapped[str | None] = mapped_column(sa.String(10), nullable=True)

    uploaded_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)
