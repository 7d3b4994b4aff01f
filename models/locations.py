from core.database import Base
from sqlalchemy.sql import func
from sqlalchemy import (Column, String, Numeric, DateTime)
from .mixins import UUIDPrimaryKeyMixin

class Location(Base, UUIDPrimaryKeyMixin):
    """
    Append-only courier position record. Rows are never updated; history
    reads take the most recent ones per user.
    """
    __tablename__ = "locations"

    user_id = Column(String(36), nullable=False, index=True)
    order_id = Column(String(36), nullable=False, index=True)

    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    timestamp = Column(DateTime, default=func.now(), nullable=False, index=True)
