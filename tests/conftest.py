"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolate cached settings between tests
    - Schema Fixtures: a small user/post schema with counting resolvers
    - Clock Fixtures: a controllable monotonic clock for TTL tests
"""

from __future__ import annotations

import os
from collections import Counter
from typing import Any

import pytest
from graphql import GraphQLSchema, build_schema

from graphql_envelop.core.settings import clear_settings_cache
from tests.utils import FakeClock

# Ensure tests never pick up a developer's environment
for _name in (
    "ENVELOP_ENABLE_INTERNAL_TRACING",
    "ENVELOP_OTEL_SPANS",
    "RESPONSE_CACHE_DEFAULT_TTL",
    "RESPONSE_CACHE_INCLUDE_EXTENSION_METADATA",
):
    os.environ.pop(_name, None)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Clear the LRU-cached settings before and after every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Schema Fixtures
# ============================================================================

DIRECTORY_SDL = """
type Query {
  users: [User!]!
  user(id: ID!): User
  posts: [Post!]!
  search: [SearchResult!]!
  named: [Named!]!
  me: Viewer
  flaky: String
}

type Mutation {
  updateUser(id: ID!, name: String!): User!
}

type User implements Named {
  id: ID!
  name: String!
}

type Post {
  id: ID!
  title: String!
  author: User!
}

type Viewer implements Named {
  name: String!
}

interface Named {
  name: String!
}

union SearchResult = User | Post
"""


class Directory:
    """In-memory data behind ``DIRECTORY_SDL`` that counts resolver calls."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {
            "1": {"id": "1", "name": "Ada"},
            "2": {"id": "2", "name": "Grace"},
        }
        self.calls: Counter[str] = Counter()
        self.flaky_error: Exception | None = RuntimeError("backend unavailable")

    def _users(self, info):
        self.calls["users"] += 1
        return list(self.users.values())

    def _user(self, info, id):
        self.calls["user"] += 1
        return self.users.get(id)

    def _posts(self, info):
        self.calls["posts"] += 1
        return [{"id": "p1", "title": "Hello", "author": self.users["1"]}]

    def _search(self, info):
        self.calls["search"] += 1
        return [
            {"__typename": "User", **self.users["2"]},
            {"__typename": "Post", "id": "p1", "title": "Hello", "author": self.users["1"]},
        ]

    def _named(self, info):
        self.calls["named"] += 1
        return [{"__typename": "User", **self.users["1"]}, {"__typename": "Viewer", "name": "root"}]

    def _me(self, info):
        self.calls["me"] += 1
        return {"name": "root"}

    def _flaky(self, info):
        self.calls["flaky"] += 1
        if self.flaky_error is not None:
            raise self.flaky_error
        return "ok"

    def _update_user(self, info, id, name):
        self.calls["updateUser"] += 1
        self.users[id] = {"id": id, "name": name}
        return self.users[id]

    def root(self) -> dict[str, Any]:
        return {
            "users": self._users,
            "user": self._user,
            "posts": self._posts,
            "search": self._search,
            "named": self._named,
            "me": self._me,
            "flaky": self._flaky,
            "updateUser": self._update_user,
        }


@pytest.fixture
def schema() -> GraphQLSchema:
    """Schema with users, posts, a union, an interface and a type without identity."""
    return build_schema(DIRECTORY_SDL)


@pytest.fixture
def directory() -> Directory:
    """Fresh data and call counters for every test."""
    return Directory()


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Monotonic clock that only moves when the test advances it."""
    return FakeClock()
