"""
Object queries and native statements for KeelORM.
"""

from .compiler import SQLCompiler, StatementCompiler
from .expressions import Q
from .queryset import NativeQuery, QuerySet

__all__ = ["NativeQuery", "Q", "QuerySet", "SQLCompiler", "StatementCompiler"]
