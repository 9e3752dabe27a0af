"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specroute.exceptions.SpecrouteError` subclass.
Build steps that shell out to ``specroute`` can inspect the exit code to
tell a broken document apart from a bad invocation without parsing stderr.

Example::

    $ specroute compile openapi.yaml -o routes.json
    $ echo $?
    8   # EXIT_COMPILE_ERROR -- the document could not be compiled
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be loaded or parsed."""

EXIT_COMPILE_ERROR = 8
"""The OpenAPI document was loaded but could not be compiled."""
