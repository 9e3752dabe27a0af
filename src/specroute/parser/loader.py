"""Read OpenAPI documents into plain dictionaries.

A source is a local path, an ``http(s)`` URL, or ``-`` for stdin. The text is
decoded as JSON or YAML, guided by the file suffix or the response content
type when one is available. Nothing past this module touches the filesystem
or the network: the compiler only ever sees the dictionary returned by
:func:`load_document`.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import yaml

from specroute.exceptions import SpecParseError, UnsupportedDocumentVersionError

FETCH_TIMEOUT = 30.0

# Decoder and the exception it raises on malformed input, keyed by format.
_DECODERS: dict[str, tuple[Callable[[str], Any], type[Exception]]] = {
    "json": (json.loads, json.JSONDecodeError),
    "yaml": (yaml.safe_load, yaml.YAMLError),
}

_SUFFIX_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}


def load_document(source: str) -> dict[str, Any]:
    """Read and decode the document at *source*.

    Args:
        source: A file path, an ``http://``/``https://`` URL, or ``-`` for stdin.

    Returns:
        The decoded document.

    Raises:
        SpecParseError: If the source cannot be read or does not decode to a
            mapping.
    """
    if source == "-":
        text, fmt = _read_stdin(), None
    elif source.startswith(("http://", "https://")):
        text, fmt = _fetch(source)
    else:
        text, fmt = _read_file(Path(source))
    return decode_document(text, fmt)


def _read_stdin() -> str:
    try:
        text = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Could not read document from stdin: {exc}") from exc
    if not text.strip():
        raise SpecParseError("No input on stdin; pipe a document or pass a path")
    return text


def _fetch(url: str) -> tuple[str, str | None]:
    """GET *url* and guess the format from its ``Content-Type``."""
    try:
        response = httpx.get(url, timeout=FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(f"HTTP {exc.response.status_code} while downloading {url}") from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        fmt = "json"
    elif "yaml" in content_type or "yml" in content_type:
        fmt = "yaml"
    else:
        fmt = None
    return response.text, fmt


def _read_file(path: Path) -> tuple[str, str | None]:
    if not path.is_file():
        raise SpecParseError(f"Document not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Could not read {path}: {exc}") from exc
    if not text.strip():
        raise SpecParseError(f"Document is empty: {path}")
    return text, _SUFFIX_FORMATS.get(path.suffix.lower())


def decode_document(text: str, fmt: str | None = None) -> dict[str, Any]:
    """Decode *text* into a mapping.

    A known *fmt* is the only decoder tried. Without one, JSON is attempted
    before YAML since every JSON document is also YAML and the JSON error
    messages are the more precise of the two.

    Raises:
        SpecParseError: If no decoder accepts the text, or the root is not a
            mapping.
    """
    candidates = [fmt] if fmt in _DECODERS else list(_DECODERS)
    failures: list[str] = []

    for name in candidates:
        decode, error_type = _DECODERS[name]
        try:
            result = decode(text)
        except error_type as exc:
            if fmt == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            failures.append(f"{name.upper()}: {exc}")
            continue
        if not isinstance(result, dict):
            found = "an empty document" if result is None else type(result).__name__
            raise SpecParseError(f"Document root must be a JSON/YAML object, found {found}")
        return result

    detail = "".join(f"\n  {failure}" for failure in failures)
    formats = " or ".join(name.upper() for name in candidates)
    raise SpecParseError(f"Could not decode document as {formats}{detail}")


def check_openapi_version(document: dict[str, Any]) -> str:
    """Return the document's ``openapi`` version if it is a 3.x version.

    Raises:
        UnsupportedDocumentVersionError: For Swagger 2.x input, a missing
            ``openapi`` marker, or any major version other than 3.
    """
    if "swagger" in document:
        raise UnsupportedDocumentVersionError(
            f"Swagger {document['swagger']} documents are not supported; "
            "convert to OpenAPI 3 first (https://converter.swagger.io)",
            "#/swagger",
        )

    marker = document.get("openapi")
    if marker is None:
        raise UnsupportedDocumentVersionError(
            "No 'openapi' version marker; expected an OpenAPI 3.x document", "#"
        )

    version = str(marker)
    if version.split(".", 1)[0] != "3":
        raise UnsupportedDocumentVersionError(
            f"OpenAPI {version} is not supported; only 3.x documents compile", "#/openapi"
        )
    return version
