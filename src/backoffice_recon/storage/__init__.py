"""Relational store access."""

from .base import ReconStore
from .sql import SqlStore

__all__ = ["ReconStore", "SqlStore"]
