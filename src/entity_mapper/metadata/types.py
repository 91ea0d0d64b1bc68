"""Helpers deriving column types and coercion flags from property annotations."""

from __future__ import annotations

import datetime as dt
import types
import uuid
from decimal import Decimal
from typing import Any, Union, get_args, get_origin

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Time,
    Uuid,
)
from sqlalchemy.types import NullType, TypeEngine

# Order matters: bool is a subclass of int and datetime of date.
_TYPE_MAP: tuple[tuple[type, type[TypeEngine[Any]]], ...] = (
    (bool, Boolean),
    (int, Integer),
    (float, Float),
    (Decimal, Numeric),
    (str, String),
    (bytes, LargeBinary),
    (dt.datetime, DateTime),
    (dt.date, Date),
    (dt.time, Time),
    (uuid.UUID, Uuid),
)


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Return ``(inner, nullable)`` for ``X | None`` / ``Optional[X]``."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        nullable = len(args) != len(get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, annotation is None or annotation is type(None)


def is_boolean(annotation: Any) -> bool:
    inner, _ = unwrap_optional(annotation)
    return inner is bool


def is_nullable(annotation: Any) -> bool:
    return unwrap_optional(annotation)[1]


def column_type_for(annotation: Any) -> TypeEngine[Any]:
    """Map a Python annotation to a SQLAlchemy column type (``NullType`` if unknown)."""
    inner, _ = unwrap_optional(annotation)
    if isinstance(inner, type):
        for python_type, sa_type in _TYPE_MAP:
            if issubclass(inner, python_type):
                return sa_type()
    return NullType()
