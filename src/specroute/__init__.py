"""specroute -- Compile OpenAPI 3.0/3.1 documents into validator declarations.

This package turns an OpenAPI document into an intermediate representation
made of named, dependency-ordered validator declarations (one per component
schema, or two in the ``client``/``server`` modes) and per-operation
request/response descriptors. An emitter then prints that representation as
source code for a runtime validation library.

Typical workflow::

    specroute compile openapi.yaml --mode server -o routes.json
    specroute inspect order openapi.yaml

Modules:
    app: Typer application and CLI entry point.
    ir: The validator expression tree.
    models: Pydantic models shared across the entire package.
    config: Compile-option precedence, data directory, atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    parser: Document loading, ``$ref`` resolution, schema parsing.
    compiler: Schema, operation, ordering, and document compilation.
"""

__version__ = "0.1.0"
