"""Operation document analysis and bookkeeping-field injection.

Two passes over an operation document, both driven by ``TypeInfo``:

- ``collect_document_info`` lists the schema coordinates (``Type.field``)
  and composite type names the executed operation traverses; these feed
  TTL resolution and the ignored-type check.
- ``add_bookkeeping_fields`` returns a copy of the document where every
  non-root selection set also requests ``__typename`` and, when the type
  has one, its identity field, under reserved aliases. Interfaces and
  unions without a shared identity field request it per possible type. The aliases never
  clash with the caller's own selections (``__typename`` or ``foo:
  __typename`` stay untouched) and are removed from results by
  ``strip_bookkeeping``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from graphql import (
    FieldNode,
    InlineFragmentNode,
    NamedTypeNode,
    NameNode,
    OperationDefinitionNode,
    SelectionSetNode,
    TypeInfo,
    TypeInfoVisitor,
    Visitor,
    get_named_type,
    get_operation_ast,
    is_composite_type,
    is_interface_type,
    is_object_type,
    is_union_type,
    separate_operations,
    visit,
)

if TYPE_CHECKING:
    from graphql import DocumentNode, GraphQLSchema

__all__ = [
    "ID_ALIAS",
    "TYPENAME_ALIAS",
    "DocumentInfo",
    "add_bookkeeping_fields",
    "collect_document_info",
]

TYPENAME_ALIAS = "__responseCacheTypeName"
ID_ALIAS = "__responseCacheId"
DEFAULT_ID_FIELD = "id"


@dataclass(frozen=True)
class DocumentInfo:
    coordinates: frozenset[str]
    types: frozenset[str]


class _InfoCollector(Visitor):
    def __init__(self, type_info: TypeInfo) -> None:
        super().__init__()
        self.type_info = type_info
        self.coordinates: set[str] = set()
        self.types: set[str] = set()

    def enter_field(self, node: FieldNode, *_args: Any) -> None:
        parent_type = self.type_info.get_parent_type()
        if parent_type is not None:
            self.coordinates.add(f"{parent_type.name}.{node.name.value}")
        named_type = get_named_type(self.type_info.get_type())
        if named_type is not None and is_composite_type(named_type):
            self.types.add(named_type.name)

    def enter_inline_fragment(self, node: InlineFragmentNode, *_args: Any) -> None:
        named_type = get_named_type(self.type_info.get_type())
        if named_type is not None and is_composite_type(named_type):
            self.types.add(named_type.name)

    def enter_fragment_definition(self, node: Any, *_args: Any) -> None:
        named_type = get_named_type(self.type_info.get_type())
        if named_type is not None and is_composite_type(named_type):
            self.types.add(named_type.name)


def collect_document_info(
    schema: GraphQLSchema,
    document: DocumentNode,
    operation_name: str | None = None,
) -> DocumentInfo:
    """Collect the schema coordinates and composite types one operation traverses.

    Only the selected operation and the fragments it reaches are visited;
    other operations in the document do not count.
    """
    operation = get_operation_ast(document, operation_name)
    if operation is not None:
        name = operation.name.value if operation.name else ""
        document = separate_operations(document).get(name, document)
    type_info = TypeInfo(schema)
    collector = _InfoCollector(type_info)
    visit(document, TypeInfoVisitor(type_info, collector))
    return DocumentInfo(coordinates=frozenset(collector.coordinates), types=frozenset(collector.types))


def _aliased_field(alias: str, name: str) -> FieldNode:
    return FieldNode(
        alias=NameNode(value=alias),
        name=NameNode(value=name),
        arguments=(),
        directives=(),
    )


class _BookkeepingInjector(Visitor):
    def __init__(self, schema: GraphQLSchema, type_info: TypeInfo, id_fields: Mapping[str, str]) -> None:
        super().__init__()
        self.schema = schema
        self.type_info = type_info
        self.id_fields = id_fields
        self.root_types = {
            root for root in (schema.query_type, schema.mutation_type, schema.subscription_type) if root
        }

    def _id_field_for(self, type_: Any) -> str | None:
        id_field = self.id_fields.get(type_.name, DEFAULT_ID_FIELD)
        return id_field if id_field in type_.fields else None

    def leave_selection_set(self, node: SelectionSetNode, _key: Any, parent: Any, *_args: Any) -> Any:
        if isinstance(parent, OperationDefinitionNode):
            return None
        parent_type = self.type_info.get_parent_type()
        if parent_type is None or parent_type in self.root_types:
            return None

        extra: list[Any] = [_aliased_field(TYPENAME_ALIAS, "__typename")]
        id_field = None
        if is_object_type(parent_type) or is_interface_type(parent_type):
            id_field = self._id_field_for(parent_type)
        if id_field is not None:
            extra.append(_aliased_field(ID_ALIAS, id_field))
        elif is_interface_type(parent_type) or is_union_type(parent_type):
            # Abstract type without a shared identity: ask each implementation.
            extra.extend(self._member_id_fragments(parent_type))

        return SelectionSetNode(selections=(*node.selections, *extra))

    def _member_id_fragments(self, abstract_type: Any) -> list[InlineFragmentNode]:
        fragments = []
        for member in self.schema.get_possible_types(abstract_type):
            id_field = self._id_field_for(member)
            if id_field is None:
                continue
            fragments.append(
                InlineFragmentNode(
                    type_condition=NamedTypeNode(name=NameNode(value=member.name)),
                    directives=(),
                    selection_set=SelectionSetNode(selections=(_aliased_field(ID_ALIAS, id_field),)),
                )
            )
        return fragments


def add_bookkeeping_fields(
    schema: GraphQLSchema,
    document: DocumentNode,
    id_fields: Mapping[str, str] | None = None,
) -> DocumentNode:
    """Return a copy of ``document`` requesting typename/id bookkeeping fields.

    Args:
        schema: Schema the document is executed against.
        document: The caller's operation document (left unchanged).
        id_fields: Identity field name per type; ``id`` otherwise.
    """
    type_info = TypeInfo(schema)
    injector = _BookkeepingInjector(schema, type_info, id_fields or {})
    return visit(document, TypeInfoVisitor(type_info, injector))
