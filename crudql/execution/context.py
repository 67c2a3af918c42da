"""Resolution context passed from a GraphQL resolver into the operations."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ResolveParams:
    """
    What a resolver knows about the field being resolved.

    ``info`` is the strawberry ``Info`` or a graphql-core ``GraphQLResolveInfo``
    (anything else with ``field_nodes`` and ``path`` works too). ``args`` holds the field
    arguments under their GraphQL names (``where``, ``page``, ``pageSize``,
    ``id``).
    """
    info: Any = None
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_info(cls, info: Any, **args: Any) -> "ResolveParams":
        return cls(info=info, args=dict(args))

    def get(self, name: str, default: Optional[Any] = None) -> Any:
        return self.args.get(name, default)

    def with_args(self, **args: Any) -> "ResolveParams":
        merged = dict(self.args)
        merged.update(args)
        return replace(self, args=merged)
