"""Column projection from the GraphQL selection set."""

from typing import Any, Dict, Iterable, List, Tuple
import logging

from graphql import FieldNode
from strawberry.types import Info
from strawberry.types.nodes import SelectedField

from .context import ResolveParams
from ..exceptions import ProjectionConfigError

logger = logging.getLogger(__name__)


def _strawberry_fields(info: Info) -> Iterable[Tuple[str, List[str]]]:
    for selected in info.selected_fields:
        cols = [
            sub.name for sub in selected.selections
            if isinstance(sub, SelectedField) and not sub.name.startswith("__")
        ]
        yield selected.alias or selected.name, cols


def _ast_fields(info: Any) -> Iterable[Tuple[str, List[str]]]:
    for node in info.field_nodes:
        cols = []
        if node.selection_set:
            for selection in node.selection_set.selections:
                if isinstance(selection, FieldNode) and not selection.name.value.startswith("__"):
                    cols.append(selection.name.value)
        yield node.alias.value if node.alias else node.name.value, cols


def selected_fields(info: Any) -> Dict[str, List[str]]:
    """Map each top-level field to the names of its immediate sub-fields.

    Accepts a strawberry ``Info`` or anything exposing graphql-core
    ``field_nodes``. Fragment spreads, inline fragments and meta fields such
    as ``__typename`` are skipped. Repeated selections of one response key
    are merged, keeping the first occurrence of each column.
    """
    entries = _strawberry_fields(info) if isinstance(info, Info) else _ast_fields(info)

    fields: Dict[str, List[str]] = {}
    for key, cols in entries:
        merged = fields.setdefault(key, [])
        for col in cols:
            if col not in merged:
                merged.append(col)
    return fields


def get_columns(params: ResolveParams) -> str:
    """
    Return the comma-joined columns requested for the resolving field.

    Raises:
        ProjectionConfigError: the path key has no selection. This means the
            resolver is attached to a field it was not written for.
    """
    info = params.info
    if info is None:
        raise ProjectionConfigError("Resolution context carries no info")

    fields = selected_fields(info)
    path_key = str(info.path.key)

    cols = fields.get(path_key)
    if not cols:
        logger.error(f"No selection found for field '{path_key}' (have: {sorted(fields)})")
        raise ProjectionConfigError(
            f"No selected columns for field '{path_key}'",
            path_key=path_key
        )

    return ",".join(cols)
