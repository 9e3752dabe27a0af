"""Shared test fixtures for specroute.

Provides reusable fixtures for loading document fixtures, building schema
contexts, isolating configuration, managing output state, and running CLI
commands. These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from specroute.compiler.schema import SchemaContext
from specroute.models import ModelMode, UsedIn
from specroute.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_global_state() -> None:
    """Reset the global OutputManager and the ``specroute`` log handler.

    The OutputManager and the Rich log handler cache references to
    sys.stdout/sys.stderr. When Typer's CliRunner redirects those streams
    and the test finishes, the cached references become stale.
    """
    yield
    reset_output()
    logger = logging.getLogger("specroute")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Load the petstore 3.0 document."""
    with open(FIXTURES_DIR / "petstore.json") as f:
        return json.load(f)


@pytest.fixture
def petstore_path() -> Path:
    return FIXTURES_DIR / "petstore.json"


@pytest.fixture
def minimal_yaml_path() -> Path:
    return FIXTURES_DIR / "minimal.yaml"


@pytest.fixture
def cyclic_path() -> Path:
    return FIXTURES_DIR / "cyclic.json"


@pytest.fixture
def swagger2_path() -> Path:
    return FIXTURES_DIR / "swagger2.json"


def _make_document(schemas: dict[str, Any] | None = None, **extra: Any) -> dict[str, Any]:
    """Build a small OpenAPI 3.0 document around *schemas*."""
    document: dict[str, Any] = {
        "openapi": "3.0.3",
        "info": {"title": "Test", "version": "1.0"},
        "paths": {},
    }
    if schemas is not None:
        document["components"] = {"schemas": schemas}
    document.update(extra)
    return document


@pytest.fixture
def make_document():
    """Factory building a small OpenAPI 3.0 document around component schemas."""
    return _make_document


@pytest.fixture
def document() -> dict[str, Any]:
    """A document with a few component schemas to reference."""
    return _make_document(
        {
            "Pet": {"type": "object", "properties": {"name": {"type": "string"}}},
            "Tag": {"type": "string"},
        }
    )


@pytest.fixture
def ctx(document: dict[str, Any]) -> SchemaContext:
    """A handler-mode schema context over :func:`document`."""
    return SchemaContext(document=document, mode=ModelMode.HANDLER, used_in=UsedIn.UNKNOWN)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME into tmp_path, clears SPECROUTE_* environment
    variables, and changes the working directory to tmp_path so no
    ``specroute.json`` from the developer's checkout is picked up.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["SPECROUTE_MODE", "SPECROUTE_PREFIX"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
