"""Exception hierarchy for specroute.

All exceptions inherit from :class:`SpecrouteError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specroute.exit_codes`.
The top-level error handler in :func:`specroute.app.main` catches
``SpecrouteError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Every :class:`CompileError` carries the JSON pointer of the document node it
was raised for, so diagnostics always point at the offending location.

Subclass hierarchy::

    SpecrouteError (exit 1)
    +-- InvalidUsageError                  (exit 2)
    +-- ConfigError                        (exit 1)
    +-- SpecParseError                     (exit 7)
    +-- CompileError                       (exit 8)
        +-- UnsupportedDocumentVersionError
        +-- UnsupportedReferenceError
        +-- UnresolvableReferenceError
        +-- UnsupportedSchemaError
        +-- SchemaDepthError
        +-- EmptyCompositionError
        +-- DanglingRequiredFieldError
        +-- RequiredWithDefaultError
        +-- InvalidDefaultTypeError
        +-- UnsupportedConstraintError
        +-- UnsupportedConversionError
        +-- UnsupportedStyleError
        +-- MissingSchemaError
        +-- InvalidParameterError
        +-- DuplicateOperationError
        +-- CircularDependencyError
"""

from __future__ import annotations

from typing import Optional

from specroute.exit_codes import (
    EXIT_COMPILE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecrouteError(Exception):
    """Base exception for all specroute errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specroute.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecrouteError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SpecrouteError):
    """Raised for configuration problems (invalid project config, unknown mode)."""

    exit_code = EXIT_GENERIC_FAILURE


class SpecParseError(SpecrouteError):
    """Raised when the OpenAPI document cannot be loaded or parsed."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class CompileError(SpecrouteError):
    """Base class for every error raised while compiling a document.

    Compile errors are fatal to the current compilation; no partial output
    is produced.

    Args:
        message: Description of the problem, without location.
        path: JSON pointer (``#/components/schemas/Pet/properties/id``) of
            the node that caused the error.
    """

    exit_code = EXIT_COMPILE_ERROR

    def __init__(self, message: str, path: str):
        self.detail = message
        self.path = path
        super().__init__(f"{message} at {path}")


class UnsupportedDocumentVersionError(CompileError):
    """Raised when the document is not an OpenAPI 3.x document."""


class UnsupportedReferenceError(CompileError):
    """Raised for ``$ref`` values that do not point inside the document."""


class UnresolvableReferenceError(CompileError):
    """Raised when a local ``$ref`` points at a node that does not exist."""


class UnsupportedSchemaError(CompileError):
    """Raised for schema shapes the compiler has no translation for."""


class SchemaDepthError(CompileError):
    """Raised when schema nesting exceeds the configured depth limit."""


class EmptyCompositionError(CompileError):
    """Raised for ``oneOf``/``anyOf``/``allOf`` without any branch."""


class DanglingRequiredFieldError(CompileError):
    """Raised when ``required`` names a field missing from ``properties``."""


class RequiredWithDefaultError(CompileError):
    """Raised when a required field or parameter also declares a default.

    See https://swagger.io/docs/specification/describing-parameters/#mistakes
    """


class InvalidDefaultTypeError(CompileError):
    """Raised when a ``default`` value does not match the declared type."""


class UnsupportedConstraintError(CompileError):
    """Raised for constraints that cannot apply to the declared format."""


class UnsupportedConversionError(CompileError):
    """Raised when wire conversion is requested for a shape that cannot cross it."""


class UnsupportedStyleError(CompileError):
    """Raised for array serialisation styles without a known delimiter."""


class MissingSchemaError(CompileError):
    """Raised when a parameter, body, or response lacks a mandatory schema."""


class InvalidParameterError(CompileError):
    """Raised for parameters with an unsupported ``in`` location."""


class DuplicateOperationError(CompileError):
    """Raised when two operations compile to the same ``operationId``."""


class InvalidServerUrlError(CompileError):
    """Raised when the first server URL cannot be split into an address."""


class CircularDependencyError(CompileError):
    """Raised when named declarations depend on each other in a cycle.

    Args:
        cycle: Declaration names forming the cycle, in dependency order,
            starting from the first name revisited by the search.
        path: Pointer of the component schema the cycle starts at.
    """

    def __init__(self, cycle: list[str], path: Optional[str] = None):
        self.cycle = list(cycle)
        super().__init__(
            f"Circular dependency between declarations: {' -> '.join(self.cycle + self.cycle[:1])}",
            path or "#/components/schemas",
        )
