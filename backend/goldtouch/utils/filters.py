from __future__ import annotations
from typing import Any, Dict, Iterable, Optional
from flask import abort


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic query-string filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'allowed': iterable(optional) } }
    Parameters absent from ``params`` (or empty) are skipped.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        allowed = meta.get('allowed')
        if allowed is not None and val not in allowed:
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query


def eq(column, coerce=None, allowed: Optional[Iterable[Any]] = None) -> Dict[str, Any]:
    """Spec for ``column == value``."""
    spec: Dict[str, Any] = {'op': lambda q, v: q.filter(column == v)}
    if coerce is not None:
        spec['coerce'] = coerce
    if allowed is not None:
        spec['allowed'] = tuple(allowed)
    return spec


def date_range(column, bound: str) -> Dict[str, Any]:
    """Spec for an inclusive day bound on a DateTime column (bound is 'from' or 'to')."""
    from datetime import timedelta
    from goldtouch.utils.validation import parse_date
    if bound == 'from':
        return {'op': lambda q, v: q.filter(column >= parse_date(v, 'from'))}
    return {'op': lambda q, v: q.filter(column < parse_date(v, 'to') + timedelta(days=1))}

__all__ = ['apply_filters', 'eq', 'date_range']
