"""Resolve local ``$ref`` JSON Reference pointers in OpenAPI documents.

OpenAPI documents commonly use ``$ref`` pointers (e.g.,
``{"$ref": "#/components/parameters/Limit"}``) to share parameters, request
bodies, and responses between operations. The compiler resolves them on
demand, one hop at a time, and never rewrites the document.

Only **internal** references (those starting with ``#``) are supported.
External file or URL references raise
:class:`~specroute.exceptions.UnsupportedReferenceError`.

Schema references are *not* resolved here: the schema compiler turns them
into named references to other declarations instead of inlining them.
"""

from __future__ import annotations

from typing import Any

from specroute.exceptions import UnresolvableReferenceError, UnsupportedReferenceError


def resolve(node: Any, document: dict[str, Any], path: str) -> Any:
    """Return *node*, or the object its ``$ref`` points to.

    Exactly one hop is followed: if the target is itself a reference it is
    returned as-is and the caller re-resolves when needed.

    Args:
        node: A document node that may be a ``{"$ref": "#/..."}`` dict.
        document: The root document to resolve against.
        path: JSON pointer of *node*, used in error messages.

    Returns:
        The referenced object, or *node* unchanged when it carries no
        ``$ref``.

    Raises:
        UnsupportedReferenceError: If the reference leaves the document.
        UnresolvableReferenceError: If the pointer does not exist.

    Example::

        param = resolve(
            {"$ref": "#/components/parameters/Limit"},
            document,
            "#/paths/~1pets/get/parameters/0",
        )
    """
    if not isinstance(node, dict) or "$ref" not in node:
        return node

    ref = node["$ref"]
    if not isinstance(ref, str) or not ref.startswith("#"):
        raise UnsupportedReferenceError(f"External $ref not supported: {ref}", f"{path}/$ref")
    return resolve_pointer(ref, document, path)


def resolve_pointer(ref: str, document: dict[str, Any], path: str) -> Any:
    """Look up a ``#/...`` JSON pointer inside *document*.

    Handles RFC 6901 JSON Pointer escaping (``~0`` for ``~``, ``~1`` for
    ``/``). The bare pointer ``#`` resolves to the document itself.

    Args:
        ref: The pointer, including the leading ``#``.
        document: The root document.
        path: JSON pointer of the referencing node, for error messages.

    Returns:
        The value found at the referenced path.

    Raises:
        UnresolvableReferenceError: If any segment in the pointer does not
            exist in the document.
    """
    pointer = ref[1:]
    if pointer == "":
        return document
    if not pointer.startswith("/"):
        raise UnresolvableReferenceError(f"Invalid JSON pointer in $ref '{ref}'", f"{path}/$ref")

    current: Any = document
    for segment in pointer[1:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")

        if isinstance(current, dict):
            if segment not in current:
                raise UnresolvableReferenceError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found", f"{path}/$ref"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise UnresolvableReferenceError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'",
                    f"{path}/$ref",
                ) from exc
        else:
            raise UnresolvableReferenceError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}",
                f"{path}/$ref",
            )

    return current


def escape_pointer_segment(segment: str) -> str:
    """Escape one key for use inside a JSON pointer (``/`` becomes ``~1``)."""
    return segment.replace("~", "~0").replace("/", "~1")
