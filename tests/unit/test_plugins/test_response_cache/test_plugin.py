"""Tests for the response cache plugin in a full pipeline.

Tests cover:
- Hits short-circuit execution, misses execute and store
- TTL tiers, including a global TTL of 0 combined with a type TTL
- Mutation invalidation of exactly the returned entities
- Ignored types, results with errors, should_cache_result override
- Introspection excluded by default, whatever the query root is named
- Only the executed operation drives TTL and the ignored-type check
- Hits handed out as copies of the stored result
- Bookkeeping fields never leak into payloads
- Metadata extensions, session separation, enabled toggle
- Fail-open behavior when the cache backend breaks
- Streamed results rejected
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from graphql import ExecutionResult, build_schema

from graphql_envelop import HookError, Plugin, envelop, use_schema
from graphql_envelop.core.exceptions import StreamingNotSupportedError
from graphql_envelop.plugins.response_cache import create_in_memory_cache, use_response_cache
from tests.utils import execute_operation

USERS_QUERY = "{ users { id name } }"


def session_from_context(context):
    return context.get("session")


@pytest.fixture
def make_pipeline(schema, clock):
    """Build a pipeline with a response cache on the fake clock."""

    def factory(**options):
        options.setdefault("session", session_from_context)
        options.setdefault("cache", create_in_memory_cache(clock=clock))
        plugin = use_response_cache(**options)
        return envelop([use_schema(schema), plugin]), plugin

    return factory


class TestQueryCaching:
    async def test_identical_query_hits_cache(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()

        first = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        second = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert directory.calls["users"] == 1
        assert first.data == second.data == {"users": [{"id": "1", "name": "Ada"}, {"id": "2", "name": "Grace"}]}

    async def test_type_ttl_with_global_ttl_zero(self, make_pipeline, directory, clock):
        """ttl=0 with User:200 caches user queries for 200ms."""
        get_enveloped, _ = make_pipeline(ttl=0, ttl_per_type={"User": 200})

        first = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        assert directory.calls["users"] == 1

        clock.advance(150)
        second = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        assert directory.calls["users"] == 1
        assert second == first

        clock.advance(100)
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        assert directory.calls["users"] == 2

    async def test_global_ttl_zero_disables_caching(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(ttl=0)

        await execute_operation(get_enveloped, "{ me { name } }", root_value=directory.root())
        await execute_operation(get_enveloped, "{ me { name } }", root_value=directory.root())

        assert directory.calls["me"] == 2
        assert len(plugin.cache.store) == 0

    async def test_coordinate_ttl_beats_type_ttl(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline(
            include_extension_metadata=True,
            ttl_per_type={"User": 500},
            ttl_per_schema_coordinate={"Query.users": 50},
        )

        result = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert result.extensions["responseCache"] == {"hit": False, "didCache": True, "ttl": 50}

    async def test_variables_are_part_of_the_key(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()
        query = "query User($id: ID!) { user(id: $id) { name } }"

        one = await execute_operation(get_enveloped, query, variables={"id": "1"}, root_value=directory.root())
        two = await execute_operation(get_enveloped, query, variables={"id": "2"}, root_value=directory.root())
        await execute_operation(get_enveloped, query, variables={"id": "1"}, root_value=directory.root())

        assert one.data == {"user": {"name": "Ada"}}
        assert two.data == {"user": {"name": "Grace"}}
        assert directory.calls["user"] == 2

    async def test_sessions_do_not_share_entries(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()

        await execute_operation(get_enveloped, USERS_QUERY, context={"session": "a"}, root_value=directory.root())
        await execute_operation(get_enveloped, USERS_QUERY, context={"session": "b"}, root_value=directory.root())
        await execute_operation(get_enveloped, USERS_QUERY, context={"session": "a"}, root_value=directory.root())

        assert directory.calls["users"] == 2

    async def test_disabled_per_request(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(enabled=lambda context: not context.get("no_cache"))

        for _ in range(2):
            await execute_operation(get_enveloped, USERS_QUERY, context={"no_cache": True}, root_value=directory.root())

        assert directory.calls["users"] == 2
        assert len(plugin.cache.store) == 0

    async def test_async_session_and_key_builder(self, make_pipeline, directory):
        keys = []

        async def session(context):
            return "async-session"

        async def build_key(document_string, variable_values, session_id):
            keys.append(session_id)
            return f"{session_id}:{document_string}"

        get_enveloped, _ = make_pipeline(session=session, build_response_cache_key=build_key)

        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert keys == ["async-session", "async-session"]
        assert directory.calls["users"] == 1


class TestBookkeepingFields:
    async def test_injected_fields_never_reach_the_caller(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()

        result = await execute_operation(get_enveloped, "{ posts { title author { name } } }", root_value=directory.root())

        assert result.data == {"posts": [{"title": "Hello", "author": {"name": "Ada"}}]}

    async def test_user_selected_typename_is_kept(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()
        query = "{ users { __typename kind: __typename name } }"

        miss = await execute_operation(get_enveloped, query, root_value=directory.root())
        hit = await execute_operation(get_enveloped, query, root_value=directory.root())

        expected = {"__typename": "User", "kind": "User", "name": "Ada"}
        assert miss.data["users"][0] == expected
        assert hit.data["users"][0] == expected

    async def test_entities_collected_without_selecting_id(self, make_pipeline, directory):
        """The entry is indexed by id even though the caller never asked for it."""
        get_enveloped, plugin = make_pipeline()

        await execute_operation(get_enveloped, "{ search { ... on User { name } ... on Post { title } } }", root_value=directory.root())

        deleted = await plugin.invalidate([{"typename": "Post", "id": "p1"}])
        assert len(deleted) == 1


class TestMutationInvalidation:
    async def test_mutation_invalidates_only_entries_with_returned_entity(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(include_extension_metadata=True)
        user_one = '{ user(id: "1") { name } }'
        user_two = '{ user(id: "2") { name } }'
        await execute_operation(get_enveloped, user_one, root_value=directory.root())
        await execute_operation(get_enveloped, user_two, root_value=directory.root())

        mutation = await execute_operation(
            get_enveloped,
            'mutation { updateUser(id: "1", name: "Ada Lovelace") { name } }',
            root_value=directory.root(),
        )

        assert mutation.data == {"updateUser": {"name": "Ada Lovelace"}}
        assert mutation.extensions["responseCache"] == {
            "hit": False,
            "invalidatedEntities": [{"typename": "User", "id": "1"}],
        }

        refreshed = await execute_operation(get_enveloped, user_one, root_value=directory.root())
        untouched = await execute_operation(get_enveloped, user_two, root_value=directory.root())

        assert refreshed.data == {"user": {"name": "Ada Lovelace"}}
        assert refreshed.extensions["responseCache"]["hit"] is False
        assert untouched.extensions["responseCache"] == {"hit": True}
        assert directory.calls["user"] == 3

    async def test_list_entries_invalidated_by_member_update(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        await execute_operation(
            get_enveloped,
            'mutation { updateUser(id: "2", name: "Grace Hopper") { id } }',
            root_value=directory.root(),
        )
        result = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert directory.calls["users"] == 2
        assert result.data["users"][1] == {"id": "2", "name": "Grace Hopper"}

    async def test_interface_entries_invalidated_by_implementation_update(self, make_pipeline, directory):
        """Entities behind an interface without an id field are still indexed."""
        get_enveloped, _ = make_pipeline()
        await execute_operation(get_enveloped, "{ named { name } }", root_value=directory.root())

        await execute_operation(
            get_enveloped,
            'mutation { updateUser(id: "1", name: "Ada L.") { name } }',
            root_value=directory.root(),
        )
        result = await execute_operation(get_enveloped, "{ named { name } }", root_value=directory.root())

        assert directory.calls["named"] == 2
        assert result.data == {"named": [{"name": "Ada L."}, {"name": "root"}]}

    async def test_mutation_invalidation_can_be_disabled(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline(invalidate_via_mutation=False)
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        await execute_operation(
            get_enveloped,
            'mutation { updateUser(id: "1", name: "Changed") { id } }',
            root_value=directory.root(),
        )
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert directory.calls["users"] == 1

    async def test_manual_invalidation_by_type_name(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline()
        await execute_operation(get_enveloped, '{ user(id: "1") { name } }', root_value=directory.root())
        await execute_operation(get_enveloped, '{ user(id: "2") { name } }', root_value=directory.root())

        deleted = await plugin.invalidate([{"typename": "User"}])

        assert len(deleted) == 2
        assert len(plugin.cache.store) == 0


class TestCacheability:
    async def test_ignored_types_are_never_cached(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(ignored_types=["Post"], include_extension_metadata=True)

        result = await execute_operation(get_enveloped, "{ posts { title } }", root_value=directory.root())
        await execute_operation(get_enveloped, "{ posts { title } }", root_value=directory.root())

        assert directory.calls["posts"] == 2
        assert result.extensions["responseCache"] == {"hit": False, "didCache": False}
        assert len(plugin.cache.store) == 0

    async def test_results_with_errors_are_not_cached(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()

        failed = await execute_operation(get_enveloped, "{ flaky }", root_value=directory.root())
        directory.flaky_error = None
        recovered = await execute_operation(get_enveloped, "{ flaky }", root_value=directory.root())

        assert failed.errors
        assert recovered.data == {"flaky": "ok"}
        assert directory.calls["flaky"] == 2

    async def test_should_cache_result_override(self, make_pipeline, directory):
        should_cache = MagicMock(return_value=True)
        get_enveloped, _ = make_pipeline(should_cache_result=should_cache)

        await execute_operation(get_enveloped, "{ flaky }", root_value=directory.root())
        cached = await execute_operation(get_enveloped, "{ flaky }", root_value=directory.root())

        assert directory.calls["flaky"] == 1
        assert cached.errors[0].message == "backend unavailable"
        kwargs = should_cache.call_args.kwargs
        assert set(kwargs) == {"cache_key", "result"}
        assert isinstance(kwargs["result"], ExecutionResult)

    async def test_introspection_is_not_cached_by_default(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(include_extension_metadata=True)

        result = await execute_operation(get_enveloped, "{ __schema { queryType { name } } }")

        assert result.data == {"__schema": {"queryType": {"name": "Query"}}}
        assert result.extensions is None
        assert len(plugin.cache.store) == 0

    async def test_introspection_cached_when_configured(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(ttl_per_schema_coordinate={"Query.__schema": None})

        result = await execute_operation(get_enveloped, "{ __schema { queryType { name } } }")

        assert result.data == {"__schema": {"queryType": {"name": "Query"}}}
        assert len(plugin.cache.store) == 1

    async def test_introspection_not_cached_under_renamed_query_root(self, clock):
        schema = build_schema("schema { query: Root } type Root { hello: String }")
        plugin = use_response_cache(
            session=session_from_context,
            cache=create_in_memory_cache(clock=clock),
            include_extension_metadata=True,
        )
        get_enveloped = envelop([use_schema(schema), plugin])

        for _ in range(2):
            result = await execute_operation(get_enveloped, "{ __schema { queryType { name } } }")

        assert result.data == {"__schema": {"queryType": {"name": "Root"}}}
        assert result.extensions is None
        assert len(plugin.cache.store) == 0

    async def test_other_operations_in_the_document_do_not_affect_ttl(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(ttl_per_schema_coordinate={"Query.posts": 0})
        document = "query Users { users { name } } query Posts { posts { title } }"

        for _ in range(2):
            await execute_operation(get_enveloped, document, operation_name="Users", root_value=directory.root())

        assert directory.calls["users"] == 1
        assert len(plugin.cache.store) == 1

    async def test_ignored_types_of_other_operations_do_not_block_caching(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline(ignored_types=["Post"])
        document = "query Users { users { name } } query Posts { posts { title } }"

        for _ in range(2):
            await execute_operation(get_enveloped, document, operation_name="Users", root_value=directory.root())

        assert directory.calls["users"] == 1

    async def test_type_without_identity_is_cached(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(ttl_per_type={"Viewer": 1000})

        await execute_operation(get_enveloped, "{ me { name } }", root_value=directory.root())
        await execute_operation(get_enveloped, "{ me { name } }", root_value=directory.root())

        assert directory.calls["me"] == 1
        assert await plugin.invalidate([{"typename": "Viewer", "id": "root"}]) == []


class TestMetadata:
    async def test_metadata_on_miss_and_hit(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline(include_extension_metadata=True, ttl=1000)

        miss = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        hit = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert miss.extensions == {"responseCache": {"hit": False, "didCache": True, "ttl": 1000}}
        assert hit.extensions == {"responseCache": {"hit": True}}
        assert hit.data == miss.data

    async def test_no_metadata_by_default(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()

        miss = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        hit = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert miss.extensions is None
        assert hit.extensions is None

    async def test_callers_mutating_a_hit_do_not_corrupt_the_cache(self, make_pipeline, directory):
        get_enveloped, _ = make_pipeline()
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        hit = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        hit.data["users"][0]["name"] = "tampered"
        hit.data["extra"] = True
        again = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert again.data == {"users": [{"id": "1", "name": "Ada"}, {"id": "2", "name": "Grace"}]}
        assert directory.calls["users"] == 1

    async def test_cached_value_never_carries_request_metadata(self, make_pipeline, directory):
        get_enveloped, plugin = make_pipeline(include_extension_metadata=True)

        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        (entry,) = plugin.cache.store._entries.values()
        assert entry.value.extensions is None


class TestPipelineInteraction:
    async def test_hit_skips_later_plugins(self, make_pipeline, directory, schema, clock):
        events = []

        def on_execute(payload):
            events.append("before")
            return lambda done: events.append("after")

        plugin = use_response_cache(session=session_from_context, cache=create_in_memory_cache(clock=clock))
        get_enveloped = envelop([use_schema(schema), plugin, Plugin(on_execute=on_execute)])

        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
        await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert events == ["before", "after"]

    async def test_streamed_results_are_rejected(self, schema, directory, clock):
        async def stream(args):
            yield ExecutionResult(data={"users": []})

        plugin = use_response_cache(session=session_from_context, cache=create_in_memory_cache(clock=clock))
        streaming = Plugin(on_execute=lambda payload: payload.set_execute_fn(stream))
        get_enveloped = envelop([use_schema(schema), plugin, streaming])

        with pytest.raises(HookError) as exc_info:
            await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())

        assert isinstance(exc_info.value.original, StreamingNotSupportedError)
        assert len(plugin.cache.store) == 0


class BrokenCache:
    """Cache backend whose every operation fails."""

    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, value, entities, ttl, typenames):
        raise ConnectionError("cache down")

    async def invalidate(self, entities):
        raise ConnectionError("cache down")


class TestFailOpen:
    async def test_backend_failures_do_not_fail_requests(self, make_pipeline, directory, caplog):
        get_enveloped, _ = make_pipeline(cache=BrokenCache(), include_extension_metadata=True)

        with caplog.at_level(logging.ERROR):
            first = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
            second = await execute_operation(get_enveloped, USERS_QUERY, root_value=directory.root())
            mutation = await execute_operation(
                get_enveloped,
                'mutation { updateUser(id: "1", name: "X") { name } }',
                root_value=directory.root(),
            )

        assert first.data == second.data
        assert first.extensions["responseCache"]["didCache"] is False
        assert directory.calls["users"] == 2
        assert mutation.data == {"updateUser": {"name": "X"}}
        messages = {record.getMessage() for record in caplog.records}
        assert {
            "Response cache read failed",
            "Response cache write failed",
            "Response cache invalidation failed",
        } <= messages
