"""Shared helpers: JSON serialization of engine results."""

from .json_encoder import (
    DecimalEncoder,
    serialize_for_json,
    json_dumps,
)

__all__ = [
    'DecimalEncoder',
    'serialize_for_json',
    'json_dumps',
]
