"""Failure-class declarations, immunity claims and witness auditing."""

__version__ = "0.0.1"
__all__ = ["audit", "index", "lexer", "macros", "parse"]