"""Cache key schema for PetitionHub.

Key format: {namespace}:{resource}:{subresource}:{method}:{query}

Where:
- namespace: resource family ("petitions", "petition", "categories",
  "user-signatures", ...), derived from the leading path segment
- resource: percent-encoded identifier, or "@list" for collection endpoints
- subresource: percent-encoded trailing path segments joined by "/"
- method: upper-cased HTTP method
- query: sorted "name=value" pairs joined by "&", names and values encoded

Every component is percent-encoded with no safe characters, so ":", "/",
"&", "=" and "@" only ever appear as separators or markers. A literal
leading segment starting with "user-" is written with a leading "@", so
"/user-signatures/7" never shares a key with "/users/7/signatures".
Invalidation prefixes are built from the same components and always end on
a separator, so "petition:my-slug:" never matches "petition:my-slug-2:...".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Union
from urllib.parse import quote, unquote

SEPARATOR = ":"
LIST_RESOURCE = "@list"
LITERAL_MARKER = "@"
USER_NAMESPACE_PREFIX = "user-"
DEFAULT_API_PREFIX = "/api"

QueryParams = Union[Mapping[str, str], Iterable[tuple[str, str]]]


class CacheNamespace(str, Enum):
    """Resource families used for key prefixing and targeted invalidation."""

    PETITIONS = "petitions"
    PETITION = "petition"
    CATEGORIES = "categories"
    USERS = "users"
    USER_SIGNATURES = "user-signatures"
    USER_PETITIONS = "user-petitions"

    @property
    def prefix(self) -> str:
        return f"{self.value}{SEPARATOR}"


def _encode(component: str) -> str:
    return quote(component, safe="")


def _query_pairs(params: QueryParams | None) -> list[tuple[str, str]]:
    if params is None:
        return []
    # Starlette's QueryParams keeps repeated names only in multi_items()
    multi_items = getattr(params, "multi_items", None)
    if callable(multi_items):
        pairs = multi_items()
    elif isinstance(params, Mapping):
        pairs = params.items()
    else:
        pairs = params
    return sorted((str(name), str(value)) for name, value in pairs)


def _path_segments(path: str, api_prefix: str) -> list[str]:
    prefix = api_prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix) :]
    return [segment for segment in path.split("/") if segment]


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key; ``str(key)`` is the stored form."""

    namespace: str
    resource: str
    subresource: tuple[str, ...]
    method: str
    params: tuple[tuple[str, str], ...]
    derived: bool = False

    @classmethod
    def from_request(
        cls,
        method: str,
        path: str,
        query_params: QueryParams | None = None,
        api_prefix: str = DEFAULT_API_PREFIX,
    ) -> CacheKey:
        segments = _path_segments(path, api_prefix)
        if not segments:
            raise ValueError(f"Cannot derive a cache namespace from path {path!r}")

        # /users/{id}/signatures -> user-signatures, keyed by the user id
        if segments[0] == CacheNamespace.USERS.value and len(segments) >= 3:
            namespace = USER_NAMESPACE_PREFIX + segments[2]
            resource = segments[1]
            subresource = tuple(segments[3:])
            derived = True
        else:
            namespace = segments[0]
            resource = segments[1] if len(segments) > 1 else LIST_RESOURCE
            subresource = tuple(segments[2:])
            derived = False

        return cls(
            namespace=namespace,
            resource=resource,
            subresource=subresource,
            method=method.upper(),
            params=tuple(_query_pairs(query_params)),
            derived=derived,
        )

    def __str__(self) -> str:
        namespace = _encode(self.namespace)
        if not self.derived and namespace.startswith(USER_NAMESPACE_PREFIX):
            namespace = LITERAL_MARKER + namespace
        resource = (
            self.resource if self.resource == LIST_RESOURCE else _encode(self.resource)
        )
        query = "&".join(f"{_encode(name)}={_encode(value)}" for name, value in self.params)
        return SEPARATOR.join(
            (
                namespace,
                resource,
                "/".join(_encode(part) for part in self.subresource),
                self.method,
                query,
            )
        )


def build_key(
    method: str,
    path: str,
    query_params: QueryParams | None = None,
    api_prefix: str = DEFAULT_API_PREFIX,
) -> str:
    """Derive the deterministic cache key for a request."""
    return str(CacheKey.from_request(method, path, query_params, api_prefix))


class CacheKeys:
    """Cache key helpers following the naming convention above."""

    @classmethod
    def namespace_prefix(cls, namespace: CacheNamespace | str) -> str:
        """Prefix matching every key in a namespace."""
        value = namespace.value if isinstance(namespace, CacheNamespace) else namespace
        return f"{_encode(value)}{SEPARATOR}"

    @classmethod
    def resource_prefix(cls, namespace: CacheNamespace | str, identifier: str | int) -> str:
        """Prefix matching every key for one resource, including its sub-resources."""
        return f"{cls.namespace_prefix(namespace)}{_encode(str(identifier))}{SEPARATOR}"

    @classmethod
    def list_prefix(cls, namespace: CacheNamespace | str) -> str:
        """Prefix matching the collection entries of a namespace."""
        return f"{cls.namespace_prefix(namespace)}{LIST_RESOURCE}{SEPARATOR}"

    @classmethod
    def parse_key(cls, key: str) -> CacheKey | None:
        """Parse a stored key back into its components.

        Returns None if the key doesn't match the expected format.
        """
        parts = key.split(SEPARATOR)
        if len(parts) != 5 or not parts[0] or not parts[3]:
            return None

        namespace, resource, subresource, method, query = parts
        derived = False
        if namespace.startswith(LITERAL_MARKER):
            namespace = namespace[len(LITERAL_MARKER) :]
        elif namespace.startswith(USER_NAMESPACE_PREFIX):
            derived = True

        params: list[tuple[str, str]] = []
        if query:
            for pair in query.split("&"):
                name, sep, value = pair.partition("=")
                if not sep:
                    return None
                params.append((unquote(name), unquote(value)))

        return CacheKey(
            namespace=unquote(namespace),
            resource=resource if resource == LIST_RESOURCE else unquote(resource),
            subresource=tuple(unquote(part) for part in subresource.split("/") if part),
            method=method,
            params=tuple(params),
            derived=derived,
        )
