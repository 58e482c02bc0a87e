# backend/app/models/base_enum.py
"""
Safe enum helpers for SQLAlchemy.

Columns backed by a Python ``(str, Enum)`` must persist the member VALUE,
not its NAME, so that rows written by raw SQL (seeds, conditional updates)
and rows written through the ORM agree.

Usage:
    from app.models.base_enum import create_safe_enum

    class InviteCode(Base):
        status = Column(
            create_safe_enum(InviteCodeStatus, "invite_code_status"),
            nullable=False,
            default=InviteCodeStatus.UNUSED,
        )
"""

from enum import Enum
from typing import Sequence, Type

from sqlalchemy import Enum as SAEnum


def create_safe_enum(
    enum_class: Type[Enum],
    name: str,
    *,
    native_enum: bool = False,
    validate_strings: bool = True,
) -> SAEnum:
    """
    Create a SQLAlchemy Enum that stores enum values (not names).

    Non-native by default: the column is a VARCHAR with a CHECK constraint,
    which behaves the same on PostgreSQL and SQLite.
    """
    return SAEnum(
        enum_class,
        name=name,
        native_enum=native_enum,
        create_constraint=not native_enum,
        validate_strings=validate_strings,
        values_callable=_get_enum_values,
        length=max(len(member.value) for member in enum_class),
    )


def _get_enum_values(enum_class: Type[Enum]) -> Sequence[str]:
    """Extract values from an enum class for SAEnum storage."""
    return [member.value for member in enum_class]
