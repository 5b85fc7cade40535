# contract_gateway/core/use_cases/compute_invalidations.py
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Sequence, Tuple

import structlog

from contract_gateway.core.domain.models import CacheInvalidation, InvalidationMode, OperationRequest
from contract_gateway.core.domain.op_meta import (
    InvalidationDirective,
    KeyInvalidation,
    OpInvalidation,
    PrefixInvalidation,
)

if TYPE_CHECKING:
    from contract_gateway.core.contracts.registry import OperationRegistry

logger = structlog.get_logger()


class ComputeInvalidations:
    """
    Use Case: turns ``invalidate`` directives into concrete cache purges.

    ``prefix`` and ``key`` directives are literal. An ``op`` directive purges
    every cached entry of the target operation whose inputs agree with the
    fields selected from the current request, whatever else those reads were
    keyed on. An unknown target raises instead of silently purging nothing.
    """

    def __init__(self, registry: "OperationRegistry"):
        self.registry = registry

    def execute(
        self,
        directives: Sequence[InvalidationDirective],
        request: OperationRequest,
        *,
        op: Optional[str] = None,
    ) -> List[CacheInvalidation]:
        return [self._compute(index, directive, request, op) for index, directive in enumerate(directives)]

    def execute_isolated(
        self,
        directives: Sequence[InvalidationDirective],
        request: OperationRequest,
        *,
        op: Optional[str] = None,
    ) -> Tuple[List[CacheInvalidation], List[Tuple[int, Exception]]]:
        """Like ``execute`` but a failing directive is logged and skipped, never raised."""
        computed: List[CacheInvalidation] = []
        failures: List[Tuple[int, Exception]] = []
        for index, directive in enumerate(directives):
            try:
                computed.append(self._compute(index, directive, request, op))
            except Exception as e:
                logger.error(
                    "invalidation_directive_failed",
                    op=op,
                    directive_index=index,
                    kind=directive.kind,
                    error=str(e),
                )
                failures.append((index, e))
        return computed, failures

    def _compute(
        self,
        index: int,
        directive: InvalidationDirective,
        request: OperationRequest,
        op: Optional[str],
    ) -> CacheInvalidation:
        if isinstance(directive, PrefixInvalidation):
            return CacheInvalidation(InvalidationMode.PREFIX, tuple(directive.key), index)
        if isinstance(directive, KeyInvalidation):
            return CacheInvalidation(InvalidationMode.EXACT, tuple(directive.key), index)
        if isinstance(directive, OpInvalidation):
            rule = self.registry.key_rule(directive.target, referenced_by=op)
            inputs = self._sub_request(directive, request)
            if not inputs:
                # nothing selected: every cached entry of the target goes
                return CacheInvalidation(InvalidationMode.PREFIX, rule.build(), index)
            # cached reads key on all of their inputs, so match on the selected fields
            return CacheInvalidation(InvalidationMode.MATCH, rule.build(), index, tuple(sorted(inputs.items())))
        raise TypeError(f"unsupported invalidation directive: {directive!r}")

    @staticmethod
    def _sub_request(directive: OpInvalidation, request: OperationRequest) -> Mapping[str, Any]:
        source = getattr(request, directive.source.value)
        if not isinstance(source, Mapping):
            return {}
        if directive.pick is None:
            return dict(source)
        return {name: source[name] for name in directive.pick if name in source}
