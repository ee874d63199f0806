"""Mock builders shared by the test suite."""

from typing import Any
from unittest.mock import MagicMock

from postgrest.exceptions import APIError as PostgrestAPIError

BUILDER_METHODS = (
    "select", "eq", "neq", "lt", "gte", "in_", "contains",
    "order", "limit", "maybe_single", "insert", "update",
)


def make_response(data: Any) -> MagicMock:
    response = MagicMock()
    response.data = data
    return response


def make_query(*results: Any) -> MagicMock:
    """Chainable PostgREST builder mock.

    Every builder method returns the same mock; execute() returns the given
    results in order (the last one repeats).
    """
    query = MagicMock()
    for method in BUILDER_METHODS:
        getattr(query, method).return_value = query
    responses = [make_response(r) for r in results or (None,)]
    query.execute.side_effect = lambda: responses.pop(0) if len(responses) > 1 else responses[0]
    return query


def make_table_router(tables: dict[str, MagicMock]) -> MagicMock:
    """Supabase client mock whose table(name) returns tables[name]."""
    client = MagicMock()
    client.table.side_effect = lambda name: tables[name]
    return client


def rpc_error(code: str, message: str) -> PostgrestAPIError:
    return PostgrestAPIError({"code": code, "message": message, "details": None, "hint": None})
