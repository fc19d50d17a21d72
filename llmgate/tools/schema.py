"""Minimized JSON schemas for tool inputs.

A tool's schema is sent with every request, so it costs prompt tokens on every
round trip. ``generate_schema`` starts from pydantic's JSON schema and keeps
only what describes the shape of the input:

- field names, types, descriptions, enums/consts, ``required`` and nested shapes
- objects are closed with ``additionalProperties: false`` unless the model
  already declares its extra-field policy (``extra="allow"``)
- titles, defaults, examples and validation bounds are dropped
- structurally identical definitions collapse into one
- a definition used once is inlined; shared or recursive ones stay in ``$defs``
- ``anyOf[{type: X}, {type: null}]`` collapses to ``{type: [X, "null"]}``

``oneOf`` is rejected (``ToolSchemaError``) since tool-calling backends do not
accept it in function parameters.

Example:
    >>> class SearchWebInput(BaseModel):
    ...     query: str = Field(description="Search terms")
    ...     limit: int | None = None
    >>> generate_schema(SearchWebInput)
    {'type': 'object', 'properties': {'query': {'type': 'string', 'description': 'Search terms'},
     'limit': {'type': ['integer', 'null']}}, 'required': ['query'], 'additionalProperties': False}
"""

import json
from typing import Any

from pydantic import BaseModel

from llmgate.exceptions import ToolSchemaError

DEFS_KEY = "$defs"
REF_PREFIX = "#/$defs/"

# Keywords that carry validation or presentation detail rather than shape
DROPPED_KEYWORDS = frozenset(
    {
        "title",
        "default",
        "examples",
        "minLength",
        "maxLength",
        "pattern",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "minItems",
        "maxItems",
        "uniqueItems",
        "minProperties",
        "maxProperties",
        "readOnly",
        "writeOnly",
        "deprecated",
        "discriminator",
    }
)

# Keywords whose value maps names to subschemas
NAMED_SUBSCHEMAS = frozenset({"properties", "patternProperties", DEFS_KEY})

# Keywords whose value is data, not a subschema
LITERAL_KEYWORDS = frozenset({"enum", "const", "required"})


def _ref_name(ref: str) -> str:
    if not ref.startswith(REF_PREFIX):
        raise ToolSchemaError(f"Unsupported schema reference: {ref}")
    return ref[len(REF_PREFIX) :]


def _canonical(node: Any) -> str:
    return json.dumps(node, sort_keys=True)


def _strip(node: Any) -> Any:
    """Drop non-shape keywords and normalize nullable and object nodes."""
    if isinstance(node, list):
        return [_strip(item) for item in node]
    if not isinstance(node, dict):
        return node

    if "oneOf" in node:
        raise ToolSchemaError("Tool input schemas must not use oneOf")

    result: dict[str, Any] = {}
    for key, value in node.items():
        if key in DROPPED_KEYWORDS:
            continue
        if key in NAMED_SUBSCHEMAS:
            result[key] = {name: _strip(sub) for name, sub in value.items()}
        elif key in LITERAL_KEYWORDS:
            result[key] = value
        else:
            result[key] = _strip(value)

    all_of = result.get("allOf")
    if isinstance(all_of, list) and len(all_of) == 1 and isinstance(all_of[0], dict):
        del result["allOf"]
        result = {**all_of[0], **result}

    any_of = result.get("anyOf")
    if isinstance(any_of, list) and len(any_of) == 2 and {"type": "null"} in any_of:
        other = any_of[0] if any_of[1] == {"type": "null"} else any_of[1]
        if set(other) == {"type"} and isinstance(other["type"], str):
            del result["anyOf"]
            result["type"] = [other["type"], "null"]

    if result.get("type") == "object" and "properties" in result:
        result.setdefault("additionalProperties", False)

    return result


def _rewrite_refs(node: Any, aliases: dict[str, str]) -> Any:
    if isinstance(node, list):
        return [_rewrite_refs(item, aliases) for item in node]
    if not isinstance(node, dict):
        return node
    result = {}
    for key, value in node.items():
        if key == "$ref":
            name = _ref_name(value)
            result[key] = REF_PREFIX + aliases.get(name, name)
        elif key in LITERAL_KEYWORDS:
            result[key] = value
        else:
            result[key] = _rewrite_refs(value, aliases)
    return result


def _collect_refs(node: Any, found: list[str]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_refs(item, found)
    elif isinstance(node, dict):
        for key, value in node.items():
            if key == "$ref":
                found.append(_ref_name(value))
            elif key not in LITERAL_KEYWORDS:
                _collect_refs(value, found)


def _merge_identical(root: dict, defs: dict[str, Any]) -> tuple[dict, dict[str, Any]]:
    """Collapse structurally identical definitions until none remain."""
    while True:
        seen: dict[str, str] = {}
        aliases: dict[str, str] = {}
        for name in sorted(defs):
            key = _canonical(defs[name])
            if key in seen:
                aliases[name] = seen[key]
            else:
                seen[key] = name
        if not aliases:
            return root, defs
        defs = {name: _rewrite_refs(body, aliases) for name, body in defs.items() if name not in aliases}
        root = _rewrite_refs(root, aliases)


def _recursive_defs(defs: dict[str, Any]) -> set[str]:
    """Names of definitions that can reach themselves through references."""
    edges: dict[str, set[str]] = {}
    for name, body in defs.items():
        found: list[str] = []
        _collect_refs(body, found)
        edges[name] = set(found)

    recursive = set()
    for start in defs:
        stack = list(edges[start])
        visited: set[str] = set()
        while stack:
            current = stack.pop()
            if current == start:
                recursive.add(start)
                break
            if current in visited or current not in edges:
                continue
            visited.add(current)
            stack.extend(edges[current])
    return recursive


def _inline(node: Any, defs: dict[str, Any], kept: set[str]) -> Any:
    if isinstance(node, list):
        return [_inline(item, defs, kept) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        name = _ref_name(node["$ref"])
        if name not in kept:
            siblings = {key: value for key, value in node.items() if key != "$ref"}
            return {**_inline(defs[name], defs, kept), **siblings}

    result = {}
    for key, value in node.items():
        if key in NAMED_SUBSCHEMAS:
            result[key] = {name: _inline(sub, defs, kept) for name, sub in value.items()}
        elif key in LITERAL_KEYWORDS:
            result[key] = value
        else:
            result[key] = _inline(value, defs, kept)
    return result


def minimize_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Minimize an already generated JSON schema (see module docstring)."""
    schema = dict(schema)
    defs = {name: _strip(body) for name, body in schema.pop(DEFS_KEY, {}).items()}
    root = _strip(schema)
    root.pop("description", None)

    root, defs = _merge_identical(root, defs)

    references: list[str] = []
    _collect_refs(root, references)
    for body in defs.values():
        _collect_refs(body, references)
    counts = {name: references.count(name) for name in defs}
    kept = {name for name, count in counts.items() if count > 1} | _recursive_defs(defs)

    result = _inline(root, defs, kept)
    if set(result) == {"$ref"}:
        # Tool parameters must be an object at the top level
        result = dict(_inline(defs[_ref_name(result["$ref"])], defs, kept))

    # Only definitions still referenced after inlining are emitted
    reachable: set[str] = set()
    pending: list[str] = []
    _collect_refs(result, pending)
    while pending:
        name = pending.pop()
        if name in reachable:
            continue
        reachable.add(name)
        _collect_refs(_inline(defs[name], defs, kept), pending)

    if reachable:
        result[DEFS_KEY] = {name: _inline(defs[name], defs, kept) for name in sorted(reachable)}
    return result


def generate_schema(input_model: type[BaseModel]) -> dict[str, Any]:
    """Generate the minimized, model-facing schema for a tool input model.

    Raises:
        ToolSchemaError: If the input shape cannot be described to a model
    """
    if not (isinstance(input_model, type) and issubclass(input_model, BaseModel)):
        raise ToolSchemaError(f"Tool input must be a pydantic model, got {input_model!r}")
    try:
        raw = input_model.model_json_schema()
    except Exception as e:
        raise ToolSchemaError(f"Could not generate schema for {input_model.__name__}: {e}") from e
    return minimize_schema(raw)
