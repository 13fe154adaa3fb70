"""Plugins that provide the schema to the pipeline."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphql import GraphQLSchema

    from graphql_envelop.core.types import OnEnvelopedPayload, OnPluginInitPayload

__all__ = ["SchemaByContextPlugin", "SchemaPlugin", "use_schema", "use_schema_by_context"]


class SchemaPlugin:
    """Set a fixed schema once, when the pipeline is composed."""

    def __init__(self, schema: GraphQLSchema) -> None:
        self.schema = schema

    def on_plugin_init(self, payload: OnPluginInitPayload) -> None:
        payload.set_schema(self.schema)


class SchemaByContextPlugin:
    """Pick the schema per request from the initial context."""

    def __init__(self, factory: Callable[[dict[str, Any]], GraphQLSchema]) -> None:
        self.factory = factory

    def on_enveloped(self, payload: OnEnvelopedPayload) -> None:
        payload.set_schema(self.factory(payload.context))


def use_schema(schema: GraphQLSchema) -> SchemaPlugin:
    return SchemaPlugin(schema)


def use_schema_by_context(factory: Callable[[dict[str, Any]], GraphQLSchema]) -> SchemaByContextPlugin:
    return SchemaByContextPlugin(factory)
