"""``specroute compile`` -- compile a document into the JSON IR.

The output is :class:`~specroute.models.CompiledOutput` serialised with
``model_dump(mode="json")``. It goes to stdout, or is written atomically to
the file given with ``-o``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from specroute.compiler import compile_document
from specroute.config import atomic_write, resolve_options
from specroute.exceptions import CircularDependencyError, SpecrouteError
from specroute.output import error, print_document, success, suggest
from specroute.parser import load_document


def compile_command(
    spec: str = typer.Argument(..., help="OpenAPI document: file path, URL, or '-' for stdin."),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="Compile mode: handler, request, server, or client."
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="Prefix prepended to every declaration name."
    ),
    output_file: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Write the IR to this file instead of stdout."
    ),
) -> None:
    """Compile an OpenAPI document into ordered declarations and route descriptors.

    Mode and prefix fall back to ``SPECROUTE_MODE``/``SPECROUTE_PREFIX``,
    then to ``./specroute.json``, then to ``handler`` and no prefix.

    Example::

        specroute compile openapi.yaml --mode server -o routes.json
    """
    try:
        options = resolve_options(cli_mode=mode, cli_prefix=prefix)
        compiled = compile_document(load_document(spec), options)
    except CircularDependencyError as exc:
        error(str(exc))
        suggest("Break the cycle by inlining one of the schemas or restructuring the references.")
        raise typer.Exit(code=exc.exit_code) from None
    except SpecrouteError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data = compiled.model_dump(mode="json")
    if output_file is None:
        print_document(data)
        return

    atomic_write(output_file, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    success(
        f"Wrote {len(compiled.declarations)} declarations and "
        f"{len(compiled.operations)} operations to {output_file}"
    )
