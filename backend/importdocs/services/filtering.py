# Overview: Pure list filters for document and product views.

"""
List filtering over already-materialized rows (dicts from to_dict()).

- Text search is case-insensitive substring containment.
- Exact-match predicates (status, type, category) compare as given.
- None, "" and "all" disable a predicate.
- Predicates AND together, so their order never changes the result.
- Input order is preserved; rows are never copied or mutated.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

Row = dict[str, Any]
Predicate = Callable[[Row], bool]

NO_FILTER = {None, "", "all"}


def _is_unset(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in NO_FILTER
    return value in NO_FILTER


def text_match(fields: Iterable[str], needle: str | None) -> Predicate | None:
    if _is_unset(needle):
        return None
    term = needle.strip().lower()
    keys = tuple(fields)

    def _pred(row: Row) -> bool:
        return any(term in str(row.get(k) or "").lower() for k in keys)

    return _pred


def exact_match(field: str, expected: Any) -> Predicate | None:
    if _is_unset(expected):
        return None

    def _pred(row: Row) -> bool:
        value = row.get(field)
        # Query-string values arrive as str; ids in rows are int
        if isinstance(expected, str) and not isinstance(value, str) and value is not None:
            return str(value) == expected.strip()
        return value == expected

    return _pred


def apply_filters(rows: Iterable[Row], predicates: Iterable[Predicate | None]) -> list[Row]:
    active = [p for p in predicates if p is not None]
    return [row for row in rows if all(p(row) for p in active)]


def filter_documents(
    rows: Iterable[Row],
    *,
    search: str | None = None,
    status: str | None = None,
    document_type: str | None = None,
) -> list[Row]:
    return apply_filters(
        rows,
        [
            text_match(("document_number", "supplier_name"), search),
            exact_match("status", status),
            exact_match("document_type", document_type),
        ],
    )


def filter_products(
    rows: Iterable[Row],
    *,
    search: str | None = None,
    category_id: int | str | None = None,
) -> list[Row]:
    return apply_filters(
        rows,
        [
            text_match(("name", "sku"), search),
            exact_match("category_id", category_id),
        ],
    )
