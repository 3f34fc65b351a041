from sqlalchemy import Column, String, DateTime, Enum
from datetime import datetime
import uuid


def gen_uuid():
    return str(uuid.uuid4())


# Base Mixin for Tenant Isolation
class TenantMixin:
    tenant_id = Column(String(50), nullable=False, index=True)


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def enum_column(enum_cls, name: str) -> Enum:
    """String-backed enum column storing member values (``"contact"``, not ``"CONTACT"``)"""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members]
    )
