"""
JSON Schema derivation for structured answers.

Any type pydantic can validate works as an output type: BaseModel
subclasses, dataclasses, TypedDicts, ``list[int]`` and so on.
"""

from typing import Any

from pydantic import BaseModel, PydanticUserError, TypeAdapter

from rhine.errors import AssembleOutputDescriptionError


def _adapter(output_type: Any) -> TypeAdapter:
    return TypeAdapter(output_type)


def json_schema_for(output_type: Any) -> dict[str, Any]:
    """
    Derive the JSON Schema document for ``output_type``.

    Raises:
        AssembleOutputDescriptionError: If pydantic can't build a schema for the type
    """
    try:
        if isinstance(output_type, type) and issubclass(output_type, BaseModel):
            return output_type.model_json_schema()
        return _adapter(output_type).json_schema()
    except PydanticUserError as e:
        err = AssembleOutputDescriptionError()
        err.add_note(f"Cannot derive a JSON schema for output type {output_type!r}")
        raise err from e


def schema_name(output_type: Any, schema: dict[str, Any]) -> str:
    """A name usable in an OpenAI ``json_schema`` response format."""
    name = schema.get("title") or getattr(output_type, "__name__", None) or "output"
    return "".join(ch if ch.isalnum() or ch in "_-" else "_" for ch in str(name))[:64]


def response_format_for(output_type: Any, schema: dict[str, Any]) -> dict[str, Any]:
    """
    Build the ``response_format`` request field constraining output to ``schema``.

    Example:
        {"type": "json_schema",
         "json_schema": {"name": "Answer", "schema": {...}, "strict": False}}
    """
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema_name(output_type, schema),
            "schema": schema,
            "strict": False,
        },
    }


def parse_json_as(output_type: Any, text: str) -> Any:
    """Validate and deserialize JSON ``text`` into ``output_type``."""
    if isinstance(output_type, type) and issubclass(output_type, BaseModel):
        return output_type.model_validate_json(text)
    return _adapter(output_type).validate_json(text)
