"""Tests for specroute.compiler.service."""

from __future__ import annotations

import logging

import pytest

from specroute.compiler.service import compile_service_config
from specroute.exceptions import InvalidServerUrlError, UnresolvableReferenceError
from specroute.models import ServerConfig


class TestServer:
    def test_full_url(self, petstore_raw: dict) -> None:
        server = compile_service_config(petstore_raw).server
        assert server == ServerConfig(
            protocol="https", host="petstore.example.com", port=8443, base_path="/v1"
        )

    def test_no_servers(self, make_document) -> None:
        assert compile_service_config(make_document()).server is None

    def test_relative_url(self, make_document) -> None:
        server = compile_service_config(make_document(servers=[{"url": "/api/v2/"}])).server
        assert server == ServerConfig(base_path="/api/v2")

    def test_root_url_has_no_base_path(self, make_document) -> None:
        server = compile_service_config(make_document(servers=[{"url": "http://localhost/"}])).server
        assert server == ServerConfig(protocol="http", host="localhost")

    def test_first_of_many_with_warning(self, make_document, caplog: pytest.LogCaptureFixture) -> None:
        doc = make_document(
            servers=[{"url": "https://eu.example.com"}, {"url": "https://us.example.com"}]
        )
        with caplog.at_level(logging.WARNING, logger="specroute"):
            server = compile_service_config(doc).server
        assert server.host == "eu.example.com"
        assert "2 servers declared" in caplog.text

    def test_templated_url_uses_variable_defaults(self, make_document) -> None:
        doc = make_document(
            servers=[
                {
                    "url": "https://{host}:{port}/v1",
                    "variables": {
                        "host": {"default": "api.example.com"},
                        "port": {"enum": ["443", "8443"], "default": "8443"},
                    },
                }
            ]
        )
        server = compile_service_config(doc).server
        assert server == ServerConfig(
            protocol="https", host="api.example.com", port=8443, base_path="/v1"
        )

    def test_template_without_variable(self, make_document) -> None:
        doc = make_document(servers=[{"url": "https://{host}:{port}/v1"}])
        with pytest.raises(InvalidServerUrlError, match=r"\{host\}") as exc_info:
            compile_service_config(doc)
        assert exc_info.value.path == "#/servers/0/url"

    def test_non_numeric_port(self, make_document) -> None:
        doc = make_document(servers=[{"url": "https://api.example.com:https/v1"}])
        with pytest.raises(InvalidServerUrlError) as exc_info:
            compile_service_config(doc)
        assert str(exc_info.value).endswith(" at #/servers/0/url")


class TestSecuritySchemes:
    def test_petstore_schemes(self, petstore_raw: dict) -> None:
        schemes = compile_service_config(petstore_raw).security_schemes
        assert list(schemes) == ["apiKey", "oauth"]

        api_key = schemes["apiKey"]
        assert api_key.type == "apiKey"
        assert api_key.param_name == "X-API-Key"
        assert api_key.location == "header"

        oauth = schemes["oauth"]
        assert oauth.type == "oauth2"
        assert "authorizationCode" in oauth.flows
        assert oauth.description == "OAuth2 authorization code flow"

    def test_http_bearer(self, make_document) -> None:
        doc = make_document()
        doc["components"] = {
            "securitySchemes": {"bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}
        }
        scheme = compile_service_config(doc).security_schemes["bearer"]
        assert (scheme.scheme, scheme.bearer_format) == ("bearer", "JWT")
        assert scheme.param_name is None

    def test_open_id_connect(self, make_document) -> None:
        doc = make_document()
        doc["components"] = {
            "securitySchemes": {
                "oidc": {"type": "openIdConnect", "openIdConnectUrl": "https://id.example.com/.well-known"}
            }
        }
        scheme = compile_service_config(doc).security_schemes["oidc"]
        assert scheme.openid_connect_url == "https://id.example.com/.well-known"

    def test_ref_scheme(self, make_document) -> None:
        doc = make_document()
        doc["components"] = {
            "securitySchemes": {
                "primary": {"$ref": "#/components/securitySchemes/basic"},
                "basic": {"type": "http", "scheme": "basic"},
            }
        }
        assert compile_service_config(doc).security_schemes["primary"].scheme == "basic"

    def test_dangling_ref_scheme(self, make_document) -> None:
        doc = make_document()
        doc["components"] = {"securitySchemes": {"x": {"$ref": "#/components/securitySchemes/nope"}}}
        with pytest.raises(UnresolvableReferenceError) as exc_info:
            compile_service_config(doc)
        assert exc_info.value.path == "#/components/securitySchemes/x/$ref"

    def test_no_schemes(self, make_document) -> None:
        assert compile_service_config(make_document()).security_schemes == {}
