"""OpenAPI-to-validator compiler -- schemas, operations, ordering, service config.

This sub-package is the back half of the specroute pipeline. It receives the
dictionary produced by :func:`~specroute.parser.loader.load_document` and returns
a :class:`~specroute.models.CompiledOutput`.

Sub-modules:

* :mod:`~specroute.compiler.schema` -- One schema node to a validator
  expression, with model modes and wire conversion.
* :mod:`~specroute.compiler.ordering` -- Dependency-respecting order of named
  declarations, with cycle detection.
* :mod:`~specroute.compiler.operation` -- Request/response/security
  descriptors of one operation.
* :mod:`~specroute.compiler.service` -- Server address and security schemes.
* :mod:`~specroute.compiler.document` -- The whole document.
"""

from specroute.compiler.document import compile_document
from specroute.compiler.operation import compile_operation
from specroute.compiler.ordering import order_declarations
from specroute.compiler.schema import CompiledModel, SchemaContext, compile_model

__all__ = [
    "CompiledModel",
    "SchemaContext",
    "compile_document",
    "compile_model",
    "compile_operation",
    "order_declarations",
]
