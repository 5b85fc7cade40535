# contract_gateway/core/contracts/attachment.py
"""
Attaching operation metadata to route definitions.

The metadata rides in ``openapi_extra["x-op-meta"]``. FastAPI forwards
``openapi_extra`` whenever ``include_router`` re-creates an ``APIRoute``,
and emits it into the OpenAPI document as a vendor extension, so the
metadata survives router composition and reaches any generator reading the
final app. The route's own fields are untouched.
"""

import copy
from typing import Any, Mapping, Optional, Union

from contract_gateway.core.contracts.routes import RouteContract
from contract_gateway.core.domain.exceptions import OpMetaValidationError
from contract_gateway.core.domain.op_meta import OpMeta
from contract_gateway.core.use_cases.validate_op_meta import ValidateOpMeta

META_EXTENSION = "x-op-meta"


def with_meta(route: RouteContract, meta: Union[OpMeta, Mapping[str, Any]]) -> RouteContract:
    """Returns a copy of ``route`` carrying ``meta``; the original is not modified."""
    if isinstance(meta, OpMeta):
        payload = meta.to_payload()
    elif isinstance(meta, Mapping):
        # unvalidated declarations (lenient define_op_meta) are stored as written
        payload = copy.deepcopy(dict(meta))
    else:
        raise TypeError(f"meta must be an OpMeta or a mapping, got {type(meta).__name__}")

    extra = dict(route.openapi_extra or {})
    extra[META_EXTENSION] = payload
    return route.model_copy(update={"openapi_extra": extra})


attach = with_meta


def read_raw_meta(route: Any) -> Optional[Mapping[str, Any]]:
    """
    Returns the stored payload without validating it.

    Works on ``RouteContract``, FastAPI ``APIRoute`` or anything exposing an
    ``openapi_extra`` mapping.
    """
    extra = getattr(route, "openapi_extra", None)
    if not isinstance(extra, Mapping):
        return None
    payload = extra.get(META_EXTENSION)
    return payload if isinstance(payload, Mapping) else None


def read_meta(route: Any) -> Optional[OpMeta]:
    """
    Returns the validated metadata of ``route``, or None when it has none.

    Raises:
        OpMetaValidationError: The stored payload does not match the schema.
    """
    payload = read_raw_meta(route)
    if payload is None:
        return None
    result = ValidateOpMeta().validate(payload)
    if not result.ok:
        op = payload.get("op")
        raise OpMetaValidationError(result.errors, op=op if isinstance(op, str) else None)
    return result.meta
