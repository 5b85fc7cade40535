# contract_gateway/core/contracts/routes.py
"""
Route definitions and the router tree that groups them.

A ``RouteContract`` is the HTTP shape of one operation (method, path and
the pydantic models of its inputs). A ``ContractRouter`` is an ordered,
nestable mapping of names to routes or sub-routers::

    contracts = ContractRouter({
        "flags": ContractRouter({
            "get": with_meta(RouteContract(method="GET", path="/flags/{key}"), GET_FLAG),
            "set": with_meta(RouteContract(method="PUT", path="/flags/{key}", body=FlagBody), SET_FLAG),
        }),
    }, prefix="/v1")

Walking the tree yields prefixed copies of the routes; anything stored in
``openapi_extra`` travels with them.
"""

import re
from typing import Any, Dict, Iterator, Literal, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from contract_gateway.core.domain.exceptions import ContractDefinitionError

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

_PATH_PARAM = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class RouteContract(BaseModel):
    """HTTP shape of one operation."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: HttpMethod
    path: str = Field(..., pattern=r"^/")
    path_params: Optional[Type[BaseModel]] = None
    query: Optional[Type[BaseModel]] = None
    body: Optional[Type[BaseModel]] = None
    responses: Dict[int, Any] = Field(default_factory=dict)
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    openapi_extra: Optional[Dict[str, Any]] = None

    @property
    def path_param_names(self) -> Tuple[str, ...]:
        return tuple(_PATH_PARAM.findall(self.path))

    def with_prefix(self, prefix: str, tags: Tuple[str, ...] = ()) -> "RouteContract":
        if not prefix and not tags:
            return self
        merged_tags = tuple(dict.fromkeys(tags + self.tags))
        return self.model_copy(update={"path": prefix.rstrip("/") + self.path, "tags": merged_tags})


RouterEntry = Union[RouteContract, "ContractRouter"]


class ContractRouter:
    """Ordered tree of named routes."""

    def __init__(
        self,
        routes: Optional[Mapping[str, RouterEntry]] = None,
        *,
        prefix: str = "",
        tags: Tuple[str, ...] = (),
    ):
        if prefix and not prefix.startswith("/"):
            raise ContractDefinitionError(f"router prefix must start with '/': {prefix!r}")
        self.prefix = prefix
        self.tags = tuple(tags)
        self._entries: Dict[str, RouterEntry] = {}
        for name, entry in (routes or {}).items():
            self.add(name, entry)

    def add(self, name: str, entry: RouterEntry) -> None:
        if not name or "." in name:
            raise ContractDefinitionError(f"invalid route name {name!r}")
        if name in self._entries:
            raise ContractDefinitionError(f"duplicate route name {name!r}")
        if not isinstance(entry, (RouteContract, ContractRouter)):
            raise ContractDefinitionError(
                f"route {name!r} must be a RouteContract or ContractRouter, got {type(entry).__name__}"
            )
        self._entries[name] = entry

    def walk(self) -> Iterator[Tuple[Tuple[str, ...], RouteContract]]:
        """Yields ``(name_path, route)`` depth-first, with prefixes and tags applied."""
        for name, entry in self._entries.items():
            if isinstance(entry, ContractRouter):
                for sub_path, route in entry.walk():
                    yield (name,) + sub_path, route.with_prefix(self.prefix, self.tags)
            else:
                yield (name,), entry.with_prefix(self.prefix, self.tags)

    def __getitem__(self, name: str) -> RouterEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
