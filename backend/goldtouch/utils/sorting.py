from __future__ import annotations
from flask import abort


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker, default_desc: bool = False):
    """Apply a comma-separated sort expression (``-field`` for descending).

    allowed maps public field names to columns; tie_breaker keeps paging stable.
    Without an expression the tie breaker alone orders the rows.
    """
    tie = tie_breaker.desc() if default_desc else tie_breaker.asc()
    if not sort_expr:
        return query.order_by(tie)
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie)
    return query.order_by(*clauses)
