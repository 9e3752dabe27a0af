"""OpenAPI document parser -- load documents, resolve local ``$ref`` pointers, parse schemas.

This sub-package is the front half of the specroute pipeline: turning a raw
OpenAPI 3.x document (JSON or YAML, local file or remote URL) into the
dictionary and typed schema nodes the compiler consumes.

Typical usage::

    from specroute.parser import load_document, check_openapi_version

    raw = load_document("openapi.yaml")
    version = check_openapi_version(raw)

Sub-modules:

* :mod:`~specroute.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection and OpenAPI version validation.
* :mod:`~specroute.parser.resolver` -- One-hop local ``$ref`` resolution.
* :mod:`~specroute.parser.schema` -- Raw schema dicts to
  :data:`~specroute.models.SchemaNode`.
"""

from specroute.parser.loader import load_document, check_openapi_version
from specroute.parser.resolver import resolve
from specroute.parser.schema import parse_schema

__all__ = ["load_document", "check_openapi_version", "resolve", "parse_schema"]
