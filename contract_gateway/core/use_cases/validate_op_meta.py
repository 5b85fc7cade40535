# contract_gateway/core/use_cases/validate_op_meta.py
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from contract_gateway.core.domain.exceptions import OpMetaValidationError
from contract_gateway.core.domain.op_meta import OpMeta
from contract_gateway.shared.config import settings

logger = structlog.get_logger()

ROOT_PATH = "__root__"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one metadata candidate: either ``meta`` or ``errors``."""
    ok: bool
    meta: Optional[OpMeta] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def unwrap(self) -> OpMeta:
        if not self.ok or self.meta is None:
            raise OpMetaValidationError(self.errors)
        return self.meta


def format_validation_errors(exc: ValidationError) -> Dict[str, str]:
    """
    Flattens a pydantic ValidationError into ``{dotted.path: message}``.

    Paths use wire names (``service.callArgs.1.from``); errors raised by
    model validators land on the path of the model that raised them.
    """
    errors: Dict[str, str] = {}
    for err in exc.errors():
        path = ".".join(str(part) for part in err["loc"]) or ROOT_PATH
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors[path] = f"{errors[path]}; {message}" if path in errors else message
    return errors


class ValidateOpMeta:
    """
    Use Case: checks a metadata candidate against the closed ``OpMeta`` schema.

    Accepts a mapping (the declaration as written) or an existing ``OpMeta``
    (returned as-is). Never raises for bad input; the result carries a
    field-path error map instead.
    """

    def validate(self, candidate: Union[OpMeta, Mapping[str, Any]]) -> ValidationResult:
        if isinstance(candidate, OpMeta):
            return ValidationResult(ok=True, meta=candidate)
        if not isinstance(candidate, Mapping):
            return ValidationResult(
                ok=False,
                errors={ROOT_PATH: f"expected a mapping, got {type(candidate).__name__}"},
            )
        try:
            meta = OpMeta.model_validate(dict(candidate))
        except ValidationError as exc:
            return ValidationResult(ok=False, errors=format_validation_errors(exc))
        return ValidationResult(ok=True, meta=meta)

    def execute(self, candidate: Union[OpMeta, Mapping[str, Any]]) -> ValidationResult:
        return self.validate(candidate)


def define_op_meta(
    candidate: Union[OpMeta, Mapping[str, Any]],
    *,
    strict: Optional[bool] = None,
) -> Union[OpMeta, Mapping[str, Any]]:
    """
    Declares operation metadata at module-load time.

    Strict mode (``strict=True``, ``CONTRACTS_STRICT`` or a production
    ``APP_ENV``) raises ``OpMetaValidationError``. Otherwise an invalid
    declaration is logged and returned unvalidated, so a developer can keep
    working; the registry build later leaves that route without a handler.
    """
    if strict is None:
        strict = settings.strict_contracts

    result = ValidateOpMeta().validate(candidate)
    if result.ok:
        return result.meta

    op = candidate.get("op") if isinstance(candidate, Mapping) else None
    if strict:
        raise OpMetaValidationError(result.errors, op=op if isinstance(op, str) else None)

    logger.warning("op_meta_invalid", op=op, errors=result.errors)
    return candidate
