"""Explicit lookup index built once per loaded schema."""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .schema import AnyField, ChoiceField, FormSchema, group_children, ordered


class SchemaIndex:
    """Read-only view over a validated schema.

    Holds the field-by-id map, the parent of every group child and the branch
    (choice id, option value) each sub-flow field belongs to. Nothing here is
    mutated after construction; build a new index when the schema changes.
    """

    def __init__(self, schema: FormSchema) -> None:
        self.schema = schema
        by_id: Dict[str, AnyField] = {}
        parents: Dict[str, str] = {}
        branches: Dict[str, Tuple[str, str]] = {}
        self._register(schema.flow, by_id, parents, branches, parent=None, branch=None)
        self._by_id: Mapping[str, AnyField] = MappingProxyType(by_id)
        self._parents: Mapping[str, str] = MappingProxyType(parents)
        self._branches: Mapping[str, Tuple[str, str]] = MappingProxyType(branches)
        self._flow: Tuple[AnyField, ...] = tuple(ordered(schema.flow))

    @classmethod
    def _register(
        cls,
        fields: Iterable[AnyField],
        by_id: Dict[str, AnyField],
        parents: Dict[str, str],
        branches: Dict[str, Tuple[str, str]],
        *,
        parent: Optional[str],
        branch: Optional[Tuple[str, str]],
    ) -> None:
        for field in fields:
            by_id[field.id] = field
            if parent is not None:
                parents[field.id] = parent
            if branch is not None:
                branches[field.id] = branch
            cls._register(group_children(field), by_id, parents, branches, parent=field.id, branch=branch)
            if isinstance(field, ChoiceField):
                for option, sub_flow in field.option_flows.items():
                    cls._register(sub_flow, by_id, parents, branches, parent=None, branch=(field.id, option))

    @property
    def flow(self) -> Tuple[AnyField, ...]:
        """Top-level fields in ``order``."""

        return self._flow

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def field(self, field_id: str) -> AnyField:
        """Return the field for ``field_id``.

        Raises:
            KeyError: If the id is not part of the schema.
        """

        return self._by_id[field_id]

    def get(self, field_id: str) -> Optional[AnyField]:
        return self._by_id.get(field_id)

    def parent(self, field_id: str) -> Optional[AnyField]:
        parent_id = self._parents.get(field_id)
        return self._by_id[parent_id] if parent_id is not None else None

    def ancestors(self, field_id: str) -> List[AnyField]:
        """Group ancestors of a field, innermost first."""

        chain: List[AnyField] = []
        current = self.parent(field_id)
        while current is not None:
            chain.append(current)
            current = self.parent(current.id)
        return chain

    def branch_of(self, field_id: str) -> Optional[Tuple[str, str]]:
        return self._branches.get(field_id)

    def branch(self, choice: ChoiceField, option: str) -> List[AnyField]:
        """Ordered fields of the sub-flow ``option`` selects on ``choice``."""

        return ordered(choice.option_flows.get(option, []))

    def iter_tree(self, fields: Iterable[AnyField]) -> Iterator[AnyField]:
        """Yield fields and their group descendants, skipping option flows."""

        for field in fields:
            yield field
            yield from self.iter_tree(group_children(field))

    def tree_ids(self, fields: Iterable[AnyField]) -> List[str]:
        return [field.id for field in self.iter_tree(fields)]


__all__ = ["SchemaIndex"]
