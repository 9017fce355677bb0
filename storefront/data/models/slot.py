# storefront/data/models/slot.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from storefront.data.database import Base


class SlotModel(Base):
    """Trwaly slot klucz-wartosc (snapshot koszyka, profil klienta, token)."""

    __tablename__ = "kv_slots"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
