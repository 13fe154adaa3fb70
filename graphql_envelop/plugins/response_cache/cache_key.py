"""Cache key derivation for operation results."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

from graphql import print_ast

if TYPE_CHECKING:
    from graphql_envelop.core.types import ExecutionArgs

__all__ = ["build_response_cache_key", "canonical_json", "default_get_document_string"]


def canonical_json(value: Any) -> str:
    """Serialise ``value`` with mapping keys sorted at every depth.

    Values JSON cannot represent (datetimes, UUIDs, decimals) fall back to
    ``str``.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def build_response_cache_key(
    document_string: str,
    variable_values: dict[str, Any] | None,
    session_id: str | None,
) -> str:
    """Generate the cache key of one operation execution.

    The key is the SHA-256 of a JSON array holding the document, the
    variables and the session id. Variable key order never matters, and a
    ``None`` session never collides with an empty-string session.

    Returns:
        Hex digest cache key
    """
    payload = canonical_json([document_string, variable_values or {}, session_id])
    return hashlib.sha256(payload.encode()).hexdigest()


def default_get_document_string(args: ExecutionArgs) -> str:
    return print_ast(args.document)
