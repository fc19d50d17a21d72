"""Tests for minimized tool input schemas."""

from enum import Enum
from typing import Annotated, Literal, Union

import jsonschema
import pytest
from pydantic import BaseModel, ConfigDict, Field

from llmgate.exceptions import ToolSchemaError
from llmgate.tools.schema import generate_schema, minimize_schema


class Folder(str, Enum):
    INBOX = "inbox"
    ARCHIVE = "archive"


class ListEmailsInput(BaseModel):
    """List emails in a folder."""

    folder: Annotated[Folder, Field(description="Folder to list")]
    limit: Annotated[int, Field(default=10, ge=1, le=100, description="Maximum number of emails")]
    unread_only: bool | None = None


class Address(BaseModel):
    street: str
    city: str = Field(min_length=1, examples=["Paris"])


class Billing(BaseModel):
    street: str
    city: str


class OrderInput(BaseModel):
    shipping: Address
    gift_wrap: bool = False


class InvoiceInput(BaseModel):
    shipping: Address
    billing: Billing


class Contact(BaseModel):
    email: str


class MeetingInput(BaseModel):
    organizer: Contact
    attendees: list[Contact]
    title: str = Field(description="Meeting title")


class TreeNode(BaseModel):
    label: str
    children: list["TreeNode"] = []


class Cat(BaseModel):
    kind: Literal["cat"]
    meows: bool


class Dog(BaseModel):
    kind: Literal["dog"]
    barks: bool


class PetInput(BaseModel):
    pet: Annotated[Union[Cat, Dog], Field(discriminator="kind")]


class TestGenerateSchema:
    def test_flat_model(self):
        schema = generate_schema(ListEmailsInput)

        assert schema == {
            "type": "object",
            "properties": {
                "folder": {"type": "string", "enum": ["inbox", "archive"], "description": "Folder to list"},
                "limit": {"type": "integer", "description": "Maximum number of emails"},
                "unread_only": {"type": ["boolean", "null"]},
            },
            "required": ["folder"],
            "additionalProperties": False,
        }

    def test_drops_titles_defaults_and_bounds(self):
        schema = generate_schema(ListEmailsInput)
        text = str(schema)
        for keyword in ("title", "default", "minimum", "maximum", "examples"):
            assert f"'{keyword}'" not in text

    def test_single_use_definitions_are_inlined(self):
        schema = generate_schema(OrderInput)

        assert "$defs" not in schema
        shipping = schema["properties"]["shipping"]
        assert shipping["type"] == "object"
        assert shipping["additionalProperties"] is False
        assert set(shipping["required"]) == {"street", "city"}
        assert "minLength" not in shipping["properties"]["city"]

    def test_identical_shapes_share_one_definition(self):
        schema = generate_schema(InvoiceInput)

        assert list(schema["$defs"]) == ["Address"]
        assert schema["properties"]["shipping"] == {"$ref": "#/$defs/Address"}
        assert schema["properties"]["billing"] == {"$ref": "#/$defs/Address"}

    def test_shared_definition_kept_once(self):
        schema = generate_schema(MeetingInput)

        assert list(schema["$defs"]) == ["Contact"]
        assert schema["properties"]["organizer"] == {"$ref": "#/$defs/Contact"}
        assert schema["properties"]["attendees"] == {"type": "array", "items": {"$ref": "#/$defs/Contact"}}
        assert schema["$defs"]["Contact"]["additionalProperties"] is False

    def test_recursive_definition_kept(self):
        schema = generate_schema(TreeNode)

        assert schema["type"] == "object"
        assert "TreeNode" in schema["$defs"]
        assert schema["properties"]["children"]["items"] == {"$ref": "#/$defs/TreeNode"}

    def test_deterministic(self):
        assert generate_schema(MeetingInput) == generate_schema(MeetingInput)

    def test_one_of_is_rejected(self):
        with pytest.raises(ToolSchemaError, match="oneOf"):
            generate_schema(PetInput)

    def test_rejects_non_models(self):
        with pytest.raises(ToolSchemaError):
            generate_schema(dict)

    def test_field_named_like_a_keyword_is_kept(self):
        class Document(BaseModel):
            title: str
            default: int = 0

        schema = generate_schema(Document)
        assert set(schema["properties"]) == {"title", "default"}
        assert schema["required"] == ["title"]


class TestSchemaRoundTrip:
    @pytest.mark.parametrize(
        ("model", "valid", "invalid"),
        [
            (ListEmailsInput, {"folder": "inbox", "limit": 5}, {"folder": "spam"}),
            (ListEmailsInput, {"folder": "archive", "unread_only": None}, {"limit": 5}),
            (
                OrderInput,
                {"shipping": {"street": "1 Rue", "city": "Paris"}, "gift_wrap": True},
                {"shipping": {"street": "1 Rue"}},
            ),
            (
                InvoiceInput,
                {"shipping": {"street": "1 Rue", "city": "Paris"}, "billing": {"street": "2 Rue", "city": "Lyon"}},
                {"shipping": {"street": "1 Rue", "city": "Paris"}, "billing": {"city": "Lyon"}},
            ),
            (
                MeetingInput,
                {"organizer": {"email": "a@b.c"}, "attendees": [{"email": "d@e.f"}], "title": "Sync"},
                {"organizer": {"email": "a@b.c"}, "attendees": [{"email": 1}], "title": "Sync"},
            ),
            (
                TreeNode,
                {"label": "root", "children": [{"label": "leaf", "children": []}]},
                {"label": "root", "children": [{"children": []}]},
            ),
        ],
    )
    def test_accepts_conforming_rejects_non_conforming(self, model, valid, invalid):
        schema = generate_schema(model)
        jsonschema.Draft202012Validator.check_schema(schema)
        validator = jsonschema.Draft202012Validator(schema)

        assert validator.is_valid(valid)
        assert not validator.is_valid(invalid)

    def test_unknown_fields_rejected(self):
        validator = jsonschema.Draft202012Validator(generate_schema(ListEmailsInput))
        assert not validator.is_valid({"folder": "inbox", "cc": "everyone"})

    def test_open_models_stay_open(self):
        class TagsInput(BaseModel):
            model_config = ConfigDict(extra="allow")

            name: str

        document = {"name": "release", "color": "green"}
        schema = generate_schema(TagsInput)

        assert schema["additionalProperties"] is True
        assert jsonschema.Draft202012Validator(schema).is_valid(document)
        assert TagsInput.model_validate(document).model_extra == {"color": "green"}


class TestMinimizeSchema:
    def test_nullable_reference_stays_any_of(self):
        raw = {
            "type": "object",
            "properties": {"contact": {"anyOf": [{"$ref": "#/$defs/Contact"}, {"type": "null"}]}},
            "$defs": {"Contact": {"type": "object", "properties": {"email": {"type": "string"}}}},
        }

        schema = minimize_schema(raw)

        contact = schema["properties"]["contact"]
        assert contact["anyOf"][1] == {"type": "null"}
        assert contact["anyOf"][0]["properties"] == {"email": {"type": "string"}}
        assert "$defs" not in schema

    def test_external_refs_rejected(self):
        raw = {"type": "object", "properties": {"x": {"$ref": "https://example.com/schema.json"}}}
        with pytest.raises(ToolSchemaError):
            minimize_schema(raw)
