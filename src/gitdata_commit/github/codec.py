"""Wire-format rules for the Git Data API.

- Field names on the wire are snake_case. Models dump by alias so the few
  attributes whose Python name differs from the wire name are renamed.
- Blob and file payloads travel as base64 and live in memory as ``bytes``.
- Directory listings are a closed union tagged by ``type``.
"""

import base64
import binascii
import json
import re
from typing import Annotated, Any, Literal, Optional, Type, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
    field_validator,
)

from ..errors import DecodingFailure

M = TypeVar("M", bound=BaseModel)

_WHITESPACE = re.compile(r"\s+")


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(payload: str) -> bytes:
    """Decode a base64 payload, ignoring the line breaks the API inserts.

    Raises DecodingFailure for anything that is not valid base64.
    """
    if not isinstance(payload, str):
        raise DecodingFailure(
            f"Expected a base64 string, got {type(payload).__name__}"
        )
    try:
        return base64.b64decode(_WHITESPACE.sub("", payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodingFailure(f"Encountered data is not valid base64: {e}") from e


class WireModel(BaseModel):
    """Base for every request/response body."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def decode_model(model: Type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DecodingFailure(f"{model.__name__}: {_summarize(e)}") from e


def decode_with(adapter: TypeAdapter, payload: Any, what: str) -> Any:
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise DecodingFailure(f"{what}: {_summarize(e)}") from e


def decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise DecodingFailure(f"Response body is not valid JSON: {e}") from e


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors()[:3]:
        loc = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


# Directory entries


class _EntryBase(WireModel):
    name: str
    path: Optional[str] = None


class FileEntry(_EntryBase):
    type: Literal["file"] = "file"
    data: Optional[bytes] = Field(default=None, alias="content")

    @field_validator("data", mode="before")
    @classmethod
    def _decode_content(cls, value: Any) -> Any:
        if value is None or isinstance(value, bytes):
            return value
        return decode_base64(value)

    @field_serializer("data")
    def _encode_content(self, value: Optional[bytes]) -> Optional[str]:
        return None if value is None else encode_base64(value)


class DirEntry(_EntryBase):
    type: Literal["dir"] = "dir"


class SymlinkEntry(_EntryBase):
    type: Literal["symlink"] = "symlink"
    target_path: str = Field(alias="target")


class SubmoduleEntry(_EntryBase):
    type: Literal["submodule"] = "submodule"
    url: str = Field(alias="submodule_git_url")


DirectoryEntry = Annotated[
    Union[FileEntry, DirEntry, SymlinkEntry, SubmoduleEntry],
    Field(discriminator="type"),
]

_entry_adapter: TypeAdapter = TypeAdapter(DirectoryEntry)
_entry_list_adapter: TypeAdapter = TypeAdapter(list[DirectoryEntry])


def decode_entry(payload: Any) -> DirectoryEntry:
    """Decode one directory entry, dispatching on its ``type`` field."""
    return decode_with(_entry_adapter, payload, "directory entry")


def decode_entries(payload: Any) -> list[DirectoryEntry]:
    return decode_with(_entry_list_adapter, payload, "directory listing")


def encode_entry(entry: DirectoryEntry) -> dict[str, Any]:
    """Encode an entry, emitting only the fields of its own variant."""
    return entry.to_wire()
