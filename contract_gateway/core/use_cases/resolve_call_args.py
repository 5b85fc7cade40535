# contract_gateway/core/use_cases/resolve_call_args.py
import copy
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import structlog
from pydantic import TypeAdapter, ValidationError

from contract_gateway.core.domain.exceptions import ArgumentCoercionError, MissingConfigurationError
from contract_gateway.core.domain.expressions import to_js_string
from contract_gateway.core.domain.models import MISSING, OperationRequest
from contract_gateway.core.domain.op_meta import (
    ArgSource,
    ArgTransform,
    CallArg,
    FallbackKind,
    InvokeStyle,
    ServiceBinding,
)
from contract_gateway.core.ports.config_source import IConfigSource

logger = structlog.get_logger()

_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)
_NUMBER = TypeAdapter(Union[int, float])
_BOOLEAN = TypeAdapter(bool)
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Marks an argument that disappears from the call
_OMIT = object()


@dataclass(frozen=True)
class ResolvedCall:
    """The backend invocation computed for one request."""
    style: Optional[InvokeStyle] = None
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    def invoke(self, fn: Callable[..., Any]) -> Any:
        if self.style is InvokeStyle.OBJECT:
            return fn(**self.kwargs)
        return fn(*self.args)


# --- Transforms ---

def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, bool):
        raise ValueError("booleans are not dates")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time(), tzinfo=timezone.utc)
    else:
        try:
            parsed = _DATETIME.validate_python(value)
        except ValidationError:
            # date-only strings ("2024-05-01") are midnight UTC
            parsed = datetime.combine(_DATE.validate_python(value), time(), tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso(value: datetime) -> str:
    """UTC ISO-8601 with a ``Z`` suffix; fractional seconds only when non-zero."""
    value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        if value.microsecond % 1000 == 0:
            text += f".{value.microsecond // 1000:03d}"
        else:
            text += f".{value.microsecond:06d}"
    return text + "Z"


def _to_iso_date(value: Any) -> str:
    if isinstance(value, str) and _DATE_ONLY.match(value.strip()):
        return _DATE.validate_python(value.strip()).isoformat()
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return format_iso(_parse_datetime(value))


def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        value = value.strip()
    return _NUMBER.validate_python(value)


def _to_string(value: Any) -> str:
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    return to_js_string(value)


_TRANSFORMS: Dict[ArgTransform, Callable[[Any], Any]] = {
    ArgTransform.DATE: _parse_datetime,
    ArgTransform.ISO_DATE: _to_iso_date,
    ArgTransform.NUMBER: _to_number,
    ArgTransform.STRING: _to_string,
    ArgTransform.BOOLEAN: _BOOLEAN.validate_python,
}


def apply_transform(arg_name: str, transform: ArgTransform, value: Any) -> Any:
    """
    Coerces ``value``. ``None`` (JSON null) passes through untouched.

    Raises:
        ArgumentCoercionError: The value cannot be coerced (a client input error).
    """
    if value is None:
        return None
    try:
        return _TRANSFORMS[transform](value)
    except ValidationError as e:
        details = e.errors()[0]["msg"] if e.errors() else str(e)
        raise ArgumentCoercionError(arg_name, transform.value, details) from e
    except (TypeError, ValueError, OverflowError) as e:
        raise ArgumentCoercionError(arg_name, transform.value, str(e)) from e


class ResolveCallArgs:
    """
    Use Case: computes the backend call for a request from ``service.callArgs``.

    Per argument, in declared order:
    1. ``const`` arguments take their literal ``value``.
    2. Otherwise the value is read from the request source (``params``,
       ``query``, ``body`` or ``ctx``), or the whole source when no ``key``.
    3. An undefined value falls back (``env`` or literal ``value``); without a
       fallback an ``optional`` argument is omitted, anything else is None.
    4. ``transform`` coerces any defined value.

    Env fallbacks are read from the config source on every call.
    """

    def __init__(self, config_source: IConfigSource):
        self.config_source = config_source

    def execute(self, binding: ServiceBinding, request: OperationRequest) -> ResolvedCall:
        if binding.invoke is None:
            return ResolvedCall()

        values: List[Tuple[str, Any]] = [
            (arg.name, self._resolve_one(arg, request)) for arg in binding.call_args
        ]

        if binding.invoke is InvokeStyle.OBJECT:
            kwargs = {name: value for name, value in values if value is not _OMIT}
            return ResolvedCall(style=InvokeStyle.OBJECT, kwargs=kwargs)

        slots = [value for _, value in sorted(values, key=lambda item: int(item[0]))]
        while slots and slots[-1] is _OMIT:
            slots.pop()
        # an omitted slot followed by a bound one keeps its position
        args = tuple(None if value is _OMIT else value for value in slots)
        return ResolvedCall(style=InvokeStyle.POSITIONAL, args=args)

    def _resolve_one(self, arg: CallArg, request: OperationRequest) -> Any:
        if arg.source is ArgSource.CONST:
            value = copy.deepcopy(arg.value)
        else:
            value = self._read_source(arg, request)
            if value is MISSING:
                if arg.fallback is not None:
                    value = self._resolve_fallback(arg)
                elif arg.optional:
                    return _OMIT
                else:
                    return None

        if arg.transform is not None and value is not MISSING:
            value = apply_transform(arg.name, arg.transform, value)
        return value

    @staticmethod
    def _read_source(arg: CallArg, request: OperationRequest) -> Any:
        if arg.source is ArgSource.CTX:
            if arg.key is None:
                return request.ctx
            return request.ctx.lookup(arg.key)

        container: Any = getattr(request, arg.source.value)
        if arg.key is None:
            return container
        if not isinstance(container, Mapping):
            return MISSING
        return container.get(arg.key, MISSING)

    def _resolve_fallback(self, arg: CallArg) -> Any:
        fallback = arg.fallback
        if fallback.kind is FallbackKind.VALUE:
            return copy.deepcopy(fallback.value)

        value = self.config_source.get(fallback.key)
        if value is None:
            logger.error("env_fallback_missing", key=fallback.key, arg=arg.name)
            raise MissingConfigurationError(fallback.key, arg_name=arg.name)
        return value
