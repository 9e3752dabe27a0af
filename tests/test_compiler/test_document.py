"""Tests for specroute.compiler.document."""

from __future__ import annotations

import copy
import json
from typing import Any, Iterator

import pytest

from specroute.compiler import compile_document
from specroute.compiler.document import compile_component_schemas, compile_operations
from specroute.exceptions import (
    CircularDependencyError,
    DuplicateOperationError,
    UnsupportedDocumentVersionError,
)
from specroute.ir import (
    DefaultExpr,
    EnumExpr,
    NullableExpr,
    OptionalExpr,
    PrimitiveExpr,
    PrimitiveType,
    RefExpr,
    TransformDirection,
)
from specroute.models import CompiledOutput, CompileMode, CompileOptions
from specroute.parser import load_document


ALL_MODES = list(CompileMode)


def _options(mode: CompileMode = CompileMode.HANDLER, prefix: str = "") -> CompileOptions:
    return CompileOptions(mode=mode, prefix=prefix)


def _nodes(data: Any) -> Iterator[dict[str, Any]]:
    """Yield every expression node of a dumped model, depth first."""
    if isinstance(data, dict):
        if "kind" in data:
            yield data
        for value in data.values():
            yield from _nodes(value)
    elif isinstance(data, list):
        for item in data:
            yield from _nodes(item)


def _refs(expr) -> set[str]:
    """Names of every reference inside *expr*."""
    return {node["name"] for node in _nodes(expr.model_dump(mode="json")) if node.get("kind") == "ref"}


def _declaration(output: CompiledOutput, name: str):
    return next(d for d in output.declarations if d.name == name)


# ---------------------------------------------------------------------------
# Whole-document compilation
# ---------------------------------------------------------------------------


class TestPetstore:
    def test_handler_declaration_order(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options())
        assert [d.name for d in output.declarations] == ["Category", "Error", "Pet", "NewPet"]

    def test_operation_ids_in_walk_order(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options())
        assert list(output.operations) == ["listPets", "createPet", "GET /pets/:petId", "deletePet"]

    def test_operation_descriptor(self, petstore_raw: dict) -> None:
        operation = compile_document(petstore_raw, _options()).operations["GET /pets/:petId"]
        assert operation.method == "GET"
        assert operation.route == "/pets/:petId"
        assert operation.request.fields["params"].fields["petId"] == PrimitiveExpr(
            type=PrimitiveType.INTEGER
        )

    def test_security_resolution(self, petstore_raw: dict) -> None:
        operations = compile_document(petstore_raw, _options()).operations
        assert [r.scheme_name for r in operations["listPets"].security] == ["apiKey"]
        assert operations["createPet"].security[0].required_permissions == ["pets:write"]
        assert operations["deletePet"].security is None

    def test_pet_fields(self, petstore_raw: dict) -> None:
        pet = _declaration(compile_document(petstore_raw, _options()), "Pet")
        fields = pet.expr.fields
        assert fields["id"] == PrimitiveExpr(type=PrimitiveType.INTEGER)
        assert fields["category"] == OptionalExpr(base=RefExpr(name="Category"))
        assert fields["birthDate"] == OptionalExpr(base=PrimitiveExpr(type=PrimitiveType.DATE))
        assert fields["status"] == DefaultExpr(
            base=EnumExpr(values=["available", "sold"]), value="available"
        )
        assert pet.depends_on == {"Category"}
        assert pet.source == "#/components/schemas/Pet"

    def test_request_mode_keeps_date_strings(self, petstore_raw: dict) -> None:
        pet = _declaration(compile_document(petstore_raw, _options(CompileMode.REQUEST)), "Pet")
        birth = pet.expr.fields["birthDate"].base
        assert birth.type == PrimitiveType.STRING
        assert birth.pattern is not None

    def test_prefix(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options(prefix="Api"))
        assert [d.name for d in output.declarations] == ["ApiCategory", "ApiError", "ApiPet", "ApiNewPet"]
        assert _declaration(output, "ApiPet").depends_on == {"ApiCategory"}
        assert output.prefix == "Api"

    def test_service_config_attached(self, petstore_raw: dict) -> None:
        config = compile_document(petstore_raw, _options()).config
        assert config.server.host == "petstore.example.com"
        assert set(config.security_schemes) == {"apiKey", "oauth"}

    def test_document_not_mutated(self, petstore_raw: dict) -> None:
        before = copy.deepcopy(petstore_raw)
        compile_document(petstore_raw, _options(CompileMode.SERVER))
        assert petstore_raw == before


class TestDirectionalModes:
    @pytest.mark.parametrize("mode", [CompileMode.CLIENT, CompileMode.SERVER])
    def test_two_declarations_per_schema(self, petstore_raw: dict, mode: CompileMode) -> None:
        output = compile_document(petstore_raw, _options(mode))
        assert [d.name for d in output.declarations] == [
            "Category__Req",
            "Category__Res",
            "Error__Req",
            "Error__Res",
            "Pet__Req",
            "Pet__Res",
            "NewPet__Req",
            "NewPet__Res",
        ]

    def test_each_side_references_its_own_suffix(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options(CompileMode.CLIENT))
        assert _declaration(output, "Pet__Req").depends_on == {"Category__Req"}
        assert _declaration(output, "Pet__Res").depends_on == {"Category__Res"}

    def test_client_dates_cross_the_wire(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options(CompileMode.CLIENT))
        sent = _declaration(output, "Pet__Req").expr.fields["createdAt"].base
        received = _declaration(output, "Pet__Res").expr.fields["createdAt"].base
        assert sent.direction == TransformDirection.STRINGIFY
        assert received.direction == TransformDirection.PARSE

    def test_server_dates_mirror_client(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options(CompileMode.SERVER))
        assert _declaration(output, "Pet__Req").expr.fields["birthDate"].base.direction == TransformDirection.PARSE
        assert _declaration(output, "Pet__Res").expr.fields["birthDate"].base.direction == TransformDirection.STRINGIFY

    def test_operation_refs_use_side_suffix(self, petstore_raw: dict) -> None:
        operations = compile_document(petstore_raw, _options(CompileMode.SERVER)).operations
        assert "NewPet__Req" in _refs(operations["createPet"].request)
        assert _refs(operations["createPet"].response) == {"Pet__Res"}


class TestOutputInvariants:
    @pytest.mark.parametrize("mode", ALL_MODES)
    def test_every_ref_names_a_declaration(self, petstore_raw: dict, mode: CompileMode) -> None:
        output = compile_document(petstore_raw, _options(mode, prefix="P"))
        names = {d.name for d in output.declarations}
        for decl in output.declarations:
            assert _refs(decl.expr) <= names
        for operation in output.operations.values():
            assert _refs(operation.request) <= names
            assert _refs(operation.response) <= names

    @pytest.mark.parametrize("mode", ALL_MODES)
    def test_dependencies_emitted_first(self, petstore_raw: dict, mode: CompileMode) -> None:
        output = compile_document(petstore_raw, _options(mode))
        position = {d.name: i for i, d in enumerate(output.declarations)}
        for decl in output.declarations:
            assert all(position[dep] < position[decl.name] for dep in decl.depends_on)

    @pytest.mark.parametrize("mode", ALL_MODES)
    def test_default_never_inside_optional(self, petstore_raw: dict, mode: CompileMode) -> None:
        dumped = compile_document(petstore_raw, _options(mode)).model_dump(mode="json")
        for node in _nodes(dumped):
            if node["kind"] == "optional":
                assert node["base"]["kind"] != "default"

    def test_output_is_json_serialisable(self, petstore_raw: dict) -> None:
        output = compile_document(petstore_raw, _options(CompileMode.CLIENT))
        dumped = json.loads(output.model_dump_json())
        assert dumped["mode"] == "client"
        assert dumped["declarations"][4]["depends_on"] == ["Category__Req"]
        assert CompiledOutput.model_validate(dumped) == output


# ---------------------------------------------------------------------------
# Errors and other documents
# ---------------------------------------------------------------------------


class TestDocumentErrors:
    def test_swagger_rejected(self, swagger2_path) -> None:
        with pytest.raises(UnsupportedDocumentVersionError):
            compile_document(load_document(str(swagger2_path)), _options())

    def test_cycle(self, cyclic_path) -> None:
        with pytest.raises(CircularDependencyError) as exc_info:
            compile_document(load_document(str(cyclic_path)), _options())
        assert exc_info.value.cycle == ["A", "B"]
        assert exc_info.value.path == "#/components/schemas/A"

    def test_duplicate_operation_id(self, make_document) -> None:
        responses = {"204": {"description": "ok"}}
        doc = make_document(
            paths={
                "/a": {"get": {"operationId": "same", "responses": responses}},
                "/b": {"post": {"operationId": "same", "responses": responses}},
            }
        )
        with pytest.raises(DuplicateOperationError) as exc_info:
            compile_document(doc, _options())
        assert exc_info.value.path == "#/paths/~1b/post"

    def test_synthesised_id_collision(self, make_document) -> None:
        responses = {"204": {"description": "ok"}}
        doc = make_document(
            paths={
                "/a": {"get": {"operationId": "GET /b", "responses": responses}},
                "/b": {"get": {"responses": responses}},
            }
        )
        with pytest.raises(DuplicateOperationError):
            compile_operations(doc, _options())


class TestOtherDocuments:
    def test_yaml_document(self, minimal_yaml_path) -> None:
        output = compile_document(load_document(str(minimal_yaml_path)), _options())
        health = output.declarations[0]
        assert health.name == "Health"
        assert health.expr.fields["checkedAt"] == OptionalExpr(
            base=NullableExpr(base=PrimitiveExpr(type=PrimitiveType.DATETIME))
        )
        response = output.operations["GET /health"].response
        assert response.fields["statusCode"].value == 200

    def test_no_components(self, make_document) -> None:
        output = compile_document(make_document(), _options())
        assert output.declarations == []
        assert output.operations == {}
        assert output.config.server is None

    def test_non_method_keys_ignored(self, make_document) -> None:
        doc = make_document(
            paths={
                "/a": {
                    "summary": "not an operation",
                    "parameters": [],
                    "trace": {"responses": {"200": {"description": "ok"}}},
                    "get": {"responses": {"200": {"description": "ok"}}},
                }
            }
        )
        assert list(compile_operations(doc, _options())) == ["GET /a"]

    def test_component_schemas_keep_document_order(self, make_document) -> None:
        doc = make_document({"Zeta": {"type": "string"}, "Alpha": {"type": "string"}})
        names = [d.name for d in compile_component_schemas(doc, _options())]
        assert names == ["Zeta", "Alpha"]
