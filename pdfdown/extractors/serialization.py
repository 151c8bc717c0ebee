"""
JSON-ready conversion of extraction results.

Result dataclasses become plain dictionaries tagged with their class name so
they can be rebuilt later. Byte payloads (PNG image data) are wrapped as
``{"_bytes": "<base64>"}`` and enums collapse to their string values.
"""

import base64
import typing
from dataclasses import fields, is_dataclass
from enum import Enum

CLASS_TAG = "_type"
BYTES_TAG = "_bytes"

# class name -> result dataclass, filled on first deserialization
_result_classes: dict[str, type] = {}


def _encode_bytes(payload: bytes | bytearray) -> dict:
    return {BYTES_TAG: base64.b64encode(bytes(payload)).decode("ascii")}


def _decode_bytes(encoded: str) -> bytes:
    return base64.b64decode(encoded)


def _to_plain(value: typing.Any, include_binary: bool) -> typing.Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bytes, bytearray)):
        return _encode_bytes(value) if include_binary else None
    if is_dataclass(value) and not isinstance(value, type):
        plain = {CLASS_TAG: value.__class__.__name__}
        for dc_field in fields(value):
            plain[dc_field.name] = _to_plain(getattr(value, dc_field.name), include_binary)
        return plain
    if isinstance(value, dict):
        return {str(k): _to_plain(v, include_binary) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item, include_binary) for item in value]
    return value


def serialize_extraction(value: typing.Any, *, include_binary: bool = True) -> dict:
    """
    Turn an extraction result into a JSON-ready dictionary.

    Dataclasses are tagged with their class name under ``_type``. Bytes become
    ``{"_bytes": <base64>}`` or None when ``include_binary`` is False. A value
    that does not serialize to a dict is wrapped as ``{"value": ...}``.
    """
    plain = _to_plain(value, include_binary)
    return plain if isinstance(plain, dict) else {"value": plain}


def _result_class(name: str) -> type:
    if not _result_classes:
        from pdfdown.extractors import data_types

        _result_classes.update(
            (attr, obj)
            for attr, obj in vars(data_types).items()
            if isinstance(obj, type) and is_dataclass(obj)
        )
    try:
        return _result_classes[name]
    except KeyError:
        raise KeyError(f"Unknown result type: {name}") from None


def _strip_optional(annotation: typing.Any) -> typing.Any:
    """``Optional[X]`` -> ``X``; anything else is returned as is."""
    if typing.get_origin(annotation) is typing.Union:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _from_plain(value: typing.Any, annotation: typing.Any) -> typing.Any:
    if value is None:
        return None
    annotation = _strip_optional(annotation)

    if isinstance(value, dict) and BYTES_TAG in value:
        return _decode_bytes(value[BYTES_TAG])
    if isinstance(value, dict) and CLASS_TAG in value:
        return _rebuild(value)

    if typing.get_origin(annotation) is list and isinstance(value, list):
        (item_annotation,) = typing.get_args(annotation) or (typing.Any,)
        return [_from_plain(item, item_annotation) for item in value]
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return annotation(value)
    if annotation is bytes and isinstance(value, str):
        return _decode_bytes(value)
    return value


def _rebuild(data: dict) -> typing.Any:
    cls = _result_class(data.get(CLASS_TAG))
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for dc_field in fields(cls):
        if dc_field.name not in data:
            continue
        annotation = hints.get(dc_field.name, typing.Any)
        value = _from_plain(data[dc_field.name], annotation)
        if value is None and annotation is bytes:
            # image data left out at serialization time keeps its default
            continue
        kwargs[dc_field.name] = value
    return cls(**kwargs)


def deserialize_extraction(data: dict) -> typing.Any:
    """
    Rebuild a result dataclass from the output of ``serialize_extraction``.

    Raises:
        ValueError: ``data`` is not a dictionary or carries no ``_type`` tag
        KeyError: the ``_type`` tag names no known result class
    """
    if not isinstance(data, dict) or CLASS_TAG not in data:
        raise ValueError(f"Expected a dictionary tagged with '{CLASS_TAG}'")
    return _rebuild(data)
