"""Reporting package."""

from group_ledger.queries.reports import LedgerQueries, direction_of

__all__ = ["LedgerQueries", "direction_of"]
