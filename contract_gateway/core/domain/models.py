# contract_gateway/core/domain/models.py
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# --- Sentinels ---

class _Missing(Enum):
    """Marks a value that is absent from its source (JavaScript's ``undefined``)."""
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing.MISSING


def canonical_json(value: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)


def _input_text(value: Any) -> str:
    return value if isinstance(value, str) else canonical_json(value)

# --- Request side ---

class AuthContext(BaseModel):
    """
    The caller's session as seen by the authorization gate.

    Authentication happens upstream; this is only the resolved identity.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    is_super_admin: bool = Field(False, alias="isSuperAdmin")
    perms: FrozenSet[str] = Field(default_factory=frozenset)
    request_id: Optional[str] = Field(None, alias="requestId")

    @property
    def authenticated(self) -> bool:
        return bool(self.user_id)

    def lookup(self, key: str) -> Any:
        """Reads a field by wire (camelCase) or attribute name; ``MISSING`` when unknown."""
        fields = type(self).model_fields
        if key in fields:
            return getattr(self, key)
        for name, info in fields.items():
            if info.alias == key:
                return getattr(self, name)
        return MISSING

    def as_scope(self) -> Dict[str, Any]:
        """Expression-scope view of the context (camelCase keys, perms as a sorted list)."""
        data = self.model_dump(by_alias=True)
        data["perms"] = sorted(self.perms)
        return data


@dataclass(frozen=True)
class OperationRequest:
    """Everything request-derived that argument resolution may read."""
    params: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = MISSING
    ctx: AuthContext = field(default_factory=AuthContext)
    headers: Mapping[str, str] = field(default_factory=dict)
    method: str = "GET"
    path: str = ""
    client_host: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

# --- Side-effect outputs ---

class InvalidationMode(str, Enum):
    PREFIX = "prefix"
    EXACT = "exact"
    # entries of one operation whose inputs agree with the picked fields
    MATCH = "match"


@dataclass(frozen=True)
class CacheInvalidation:
    """
    One cache purge instruction computed from a directive.

    ``MATCH`` purges every entry under the operation segments in ``key``
    unless its cached inputs hold a different value for one of ``fields``.
    An entry cached without a picked field is purged too, since that read
    was not narrowed by it.
    """
    mode: InvalidationMode
    key: Tuple[str, ...]
    directive_index: int = 0
    fields: Tuple[Tuple[str, Any], ...] = ()

    def matches(self, candidate: Tuple[str, ...]) -> bool:
        candidate = tuple(candidate)
        if self.mode is InvalidationMode.EXACT:
            return candidate == self.key
        if candidate[: len(self.key)] != self.key:
            return False
        if self.mode is InvalidationMode.PREFIX:
            return True
        return self._agrees(candidate[len(self.key):])

    def _agrees(self, rest: Tuple[str, ...]) -> bool:
        if not rest:
            return True
        if len(rest) > 1:
            return False
        try:
            inputs = json.loads(rest[0])
        except ValueError:
            return False
        if not isinstance(inputs, dict):
            return False
        return all(
            name not in inputs or _input_text(inputs[name]) == _input_text(value)
            for name, value in self.fields
        )


class AuditRecord(BaseModel):
    """An audit log entry produced after a successful operation."""
    scope_id: str
    actor_id: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    before: Any = None
    after: Any = None
    request_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OperationOutcome:
    """Result of dispatching one operation, plus what its side-effect passes produced."""
    op: str
    result: Any
    invalidations: List[CacheInvalidation] = field(default_factory=list)
    audit: Optional[AuditRecord] = None
    rate_key: Optional[str] = None
    replayed: bool = False
    cached: bool = False


@dataclass(frozen=True)
class RawRequest:
    """What a ``raw`` binding's factory receives instead of resolved arguments."""
    request: OperationRequest
    op: str
    params: Mapping[str, Any]
    query: Mapping[str, Any]
    body: Any
    ctx: AuthContext
    request_id: Optional[str] = None
