"""Compile the document-level service configuration.

Collects the address of the server the API is served from and every security
scheme declared in ``components/securitySchemes``. Operations only name the
schemes they require; emitters look the details up here.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import urlsplit

from specroute.exceptions import InvalidServerUrlError
from specroute.models import SecuritySchemeInfo, ServerConfig, ServiceConfig
from specroute.parser.resolver import escape_pointer_segment, resolve

logger = logging.getLogger(__name__)

_SERVER_VARIABLE = re.compile(r"\{([^{}]+)\}")


def compile_service_config(document: dict[str, Any]) -> ServiceConfig:
    """Build the :class:`~specroute.models.ServiceConfig` of *document*.

    Args:
        document: The whole OpenAPI document.

    Returns:
        The server address (if any server is declared) and the security
        schemes keyed by name.

    Raises:
        InvalidServerUrlError: If the first server URL is not a usable address.
    """
    return ServiceConfig(
        server=_compile_server(document.get("servers")),
        security_schemes=_compile_security_schemes(document),
    )


def _compile_server(servers: Any) -> Optional[ServerConfig]:
    """Split the first server URL into protocol, host, port, and base path.

    Relative server URLs (``/v1``) only yield a base path. Only the first
    server is used when several are declared.
    """
    if not servers:
        return None
    if len(servers) > 1:
        logger.warning(
            "%d servers declared at #/servers, using the first one (%s)",
            len(servers),
            servers[0].get("url"),
        )

    path = "#/servers/0/url"
    url = _expand_variables(servers[0].get("url", "/"), servers[0].get("variables") or {}, path)
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise InvalidServerUrlError(f"Server URL {url!r} is not a valid address: {exc}", path) from exc

    return ServerConfig(
        protocol=parts.scheme or None,
        host=parts.hostname,
        port=port,
        base_path=parts.path.rstrip("/") or None,
    )


def _expand_variables(url: str, variables: dict[str, Any], path: str) -> str:
    """Replace ``{name}`` templates in *url* with the variable defaults."""

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        variable = variables.get(name)
        if not isinstance(variable, dict) or "default" not in variable:
            raise InvalidServerUrlError(
                f"Server URL variable {{{name}}} has no default value", path
            )
        return str(variable["default"])

    return _SERVER_VARIABLE.sub(_substitute, url)


def _compile_security_schemes(document: dict[str, Any]) -> dict[str, SecuritySchemeInfo]:
    """Extract security scheme definitions from ``components/securitySchemes``.

    Supports all OpenAPI security scheme types: ``apiKey``, ``http``,
    ``oauth2``, and ``openIdConnect``. Schemes may be ``$ref`` pointers to
    other components.
    """
    components = document.get("components") or {}
    schemes: dict[str, SecuritySchemeInfo] = {}

    for name, raw in (components.get("securitySchemes") or {}).items():
        scheme_data = resolve(
            raw, document, f"#/components/securitySchemes/{escape_pointer_segment(name)}"
        )
        schemes[name] = SecuritySchemeInfo(
            name=name,
            type=scheme_data.get("type", ""),
            description=scheme_data.get("description"),
            in_name=scheme_data.get("name"),
            in_location=scheme_data.get("in"),
            scheme=scheme_data.get("scheme"),
            bearer_format=scheme_data.get("bearerFormat"),
            flows=scheme_data.get("flows"),
            openid_connect_url=scheme_data.get("openIdConnectUrl"),
        )

    return schemes
