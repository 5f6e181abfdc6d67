"""Helpers for :mod:`zoints.controllers`."""

from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from werkzeug.datastructures import MultiDict
from wtforms import Form

from ..errors import BadRequest

ResponseData = Tuple[Dict[str, Any], int, Dict[str, str]]

F = TypeVar('F', bound=Form)


def payload_of(data: Optional[Any]) -> Dict[str, Any]:
    """Request JSON must be an object."""
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise BadRequest('Request body must be a JSON object')
    return dict(data)


def validated(form_class: Type[F], payload: Mapping[str, Any]) -> F:
    """Load ``payload`` into a form, and raise :class:`BadRequest` if invalid."""
    form = form_class(MultiDict({k: _as_form_value(v)
                                 for k, v in payload.items()
                                 if v is not None}))
    if not form.validate():
        raise BadRequest(describe_errors(form))
    return form


def _as_form_value(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def describe_errors(form: Form) -> str:
    return '; '.join(f'{name}: {", ".join(str(e) for e in errors)}'
                     for name, errors in sorted(form.errors.items()))


def require_string(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise BadRequest(f'{key} is required')
    return value
