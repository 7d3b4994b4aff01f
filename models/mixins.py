import uuid
from sqlalchemy.sql import func
from sqlalchemy import Column, DateTime, String


def generate_uuid() -> str:
    return str(uuid.uuid4())


class UUIDPrimaryKeyMixin:
    id = Column(String(36), primary_key=True, default=generate_uuid, index=True)


class CreatedAtMixin:
    created_at = Column(DateTime, default=func.now(), nullable=False)


class UpdatedAtMixin:
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
