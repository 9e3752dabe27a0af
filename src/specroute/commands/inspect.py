"""Inspect commands -- examine what a document compiles to.

Provides the ``specroute inspect`` sub-command group with read-only views
of a compilation: the component schema declarations and their dependencies,
the compiled operations, the emit order, and the service configuration.
Mode and prefix are resolved the same way ``specroute compile`` resolves
them.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from specroute.exceptions import SpecrouteError
from specroute.models import CompileOptions
from specroute.output import error, get_output, info, print_document


inspect_app = typer.Typer(no_args_is_help=True)

_SPEC_ARGUMENT = typer.Argument(..., help="OpenAPI document: file path, URL, or '-' for stdin.")
_MODE_OPTION = typer.Option(None, "--mode", "-m", help="Compile mode: handler, request, server, or client.")
_PREFIX_OPTION = typer.Option(None, "--prefix", help="Prefix prepended to every declaration name.")


def _load(spec: str, mode: Optional[str], prefix: Optional[str]) -> tuple[dict[str, Any], CompileOptions]:
    """Load and version-check *spec* and resolve the compile options.

    Raises:
        typer.Exit: With the error's exit code when loading fails.
    """
    from specroute.config import resolve_options
    from specroute.parser import load_document, check_openapi_version

    try:
        options = resolve_options(cli_mode=mode, cli_prefix=prefix)
        document = load_document(spec)
        check_openapi_version(document)
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    return document, options


@inspect_app.command("schemas")
def inspect_schemas(
    spec: str = _SPEC_ARGUMENT,
    mode: Optional[str] = _MODE_OPTION,
    prefix: Optional[str] = _PREFIX_OPTION,
) -> None:
    """List the declarations compiled from ``components.schemas``.

    Shows one row per declaration (two per schema in ``client`` and
    ``server`` modes) with the schema it came from and the declarations it
    references directly.

    Example::

        specroute inspect schemas openapi.yaml --mode server
    """
    from specroute.compiler.document import compile_component_schemas

    document, options = _load(spec, mode, prefix)
    try:
        declarations = compile_component_schemas(document, options)
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not declarations:
        info("No schemas defined in this document.")
        return

    rows = [
        [decl.name, decl.source or "-", ", ".join(sorted(decl.depends_on)) or "-"]
        for decl in declarations
    ]
    get_output().print_table(
        ["Declaration", "Source", "Depends on"], rows, title=f"Declarations ({len(rows)})"
    )


@inspect_app.command("operations")
def inspect_operations(
    spec: str = _SPEC_ARGUMENT,
    mode: Optional[str] = _MODE_OPTION,
    prefix: Optional[str] = _PREFIX_OPTION,
) -> None:
    """List the compiled operations keyed by ``operationId``.

    Example::

        specroute inspect operations openapi.yaml
    """
    from specroute.compiler.document import compile_operations

    document, options = _load(spec, mode, prefix)
    try:
        operations = compile_operations(document, options)
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not operations:
        info("No operations defined in this document.")
        return

    rows = []
    for op_id, descriptor in operations.items():
        security = ", ".join(req.scheme_name for req in descriptor.security or []) or "-"
        rows.append([op_id, descriptor.method, descriptor.route, security])
    get_output().print_table(
        ["Operation ID", "Method", "Route", "Security"], rows, title=f"Operations ({len(rows)})"
    )


@inspect_app.command("order")
def inspect_order(
    spec: str = _SPEC_ARGUMENT,
    mode: Optional[str] = _MODE_OPTION,
    prefix: Optional[str] = _PREFIX_OPTION,
) -> None:
    """Print declaration names in the order they must be emitted.

    One name per line, or a JSON list with ``--json``.

    Example::

        specroute inspect order openapi.yaml
    """
    from specroute.compiler.document import compile_component_schemas
    from specroute.compiler.ordering import order_declarations
    from specroute.output import OutputFormat, print_data

    document, options = _load(spec, mode, prefix)
    try:
        ordered = order_declarations(compile_component_schemas(document, options))
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    names = [decl.name for decl in ordered]
    if get_output().format == OutputFormat.JSON:
        print_document(names)
    else:
        for name in names:
            print_data(name)


@inspect_app.command("auth")
def inspect_auth(
    spec: str = _SPEC_ARGUMENT,
) -> None:
    """Show the server address and security schemes of the document.

    Example::

        specroute inspect auth openapi.yaml
    """
    from specroute.compiler.service import compile_service_config

    document, _ = _load(spec, None, None)
    try:
        config = compile_service_config(document)
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if config.server is not None:
        server = config.server
        host = server.host or "-"
        if server.port is not None:
            host = f"{host}:{server.port}"
        info(f"Server: {server.protocol or '-'}://{host}{server.base_path or ''}")

    if not config.security_schemes:
        info("No security schemes defined.")
        return

    rows = [
        [name, scheme.type, scheme.scheme or "-", scheme.location or "-", (scheme.description or "-")[:60]]
        for name, scheme in config.security_schemes.items()
    ]
    get_output().print_table(
        ["Name", "Type", "Scheme", "Location", "Description"], rows, title="Security Schemes"
    )
