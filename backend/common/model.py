from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.utils.timezone import timezone


class Base(DeclarativeBase):
    """Declarative base for all tables"""

    type_annotation_map = {
        datetime: sa.DateTime(timezone=True),
    }


class DateTimeMixin:
    """Created / updated timestamp columns"""

    created_time: Mapped[datetime] = mapped_column(
        default=timezone.now,
        comment='Created time',
    )
    updated_time: Mapped[datetime] = mapped_column(
        default=timezone.now,
        onupdate=timezone.now,
        comment='Updated time',
    )
