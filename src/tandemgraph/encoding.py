"""Key codec for Tandem element and model identifiers.

Model partitions are scanned independently and identify their elements with
compact, model-local keys. Three encodings reach us from a scan:

* short keys: 20-byte element ids, base64url without padding;
* local arrays: several short keys concatenated into one blob (``l:`` family);
* xref arrays: records of a 16-byte model id followed by a 24-byte flagged
  element key (``x:`` family), used when a reference leaves its partition.

Everything past this module deals in :class:`FullKey` only.
"""

from __future__ import annotations

import base64
import struct
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from .errors import MalformedXrefEncoding

ELEMENT_ID_SIZE = 20
ELEMENT_FLAGS_SIZE = 4
ELEMENT_ID_WITH_FLAGS_SIZE = ELEMENT_ID_SIZE + ELEMENT_FLAGS_SIZE
MODEL_ID_SIZE = 16
XREF_RECORD_SIZE = MODEL_ID_SIZE + ELEMENT_ID_WITH_FLAGS_SIZE

MODEL_URN_PREFIX = "urn:adsk.dtm:"
FACILITY_URN_PREFIX = "urn:adsk.dtt:"


class ElementFlags:
    SimpleElement = 0x00000000
    Room = 0x00000005
    FamilyType = 0x01000000
    Level = 0x01000001
    Stream = 0x01000003


ModelId = str
LocalKey = str
XrefPair = Tuple[Sequence[ModelId], Sequence[LocalKey]]


@dataclass(frozen=True, order=True)
class FullKey:
    """Globally unique element identity: owning model plus flagged local key."""

    model_id: ModelId
    key: LocalKey

    def __str__(self) -> str:
        return f"{self.model_id}/{self.key}"


def encode_websafe(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_websafe(text: str) -> bytes:
    value = str(text).strip().replace("+", "-").replace("/", "_").rstrip("=")
    padding = -len(value) % 4
    return base64.urlsafe_b64decode(value + "=" * padding)


def normalize_model_id(model_id: str) -> ModelId:
    raw = str(model_id).strip()
    if raw.startswith(MODEL_URN_PREFIX):
        return raw
    return f"{MODEL_URN_PREFIX}{raw}"


def default_model_id(facility_id: str) -> ModelId:
    """The default model shares the facility's id under the model prefix."""
    return str(facility_id).replace(FACILITY_URN_PREFIX, MODEL_URN_PREFIX)


def is_default_model(facility_id: str, model_id: str) -> bool:
    return default_model_id(facility_id) == model_id


def decode_local_array(raw: str) -> List[LocalKey]:
    """Split a same-model reference blob into its short keys."""
    data = decode_websafe(raw)
    return [
        encode_websafe(data[offset : offset + ELEMENT_ID_SIZE])
        for offset in range(0, len(data), ELEMENT_ID_SIZE)
    ]


def decode_xref_array(raw: Union[str, XrefPair]) -> Tuple[List[ModelId], List[LocalKey]]:
    """Decode a cross-model reference into parallel model id / key lists.

    ``raw`` is either the packed blob or an already split ``(models, keys)``
    pair. Index *i* of both lists denotes one reference.
    """
    if not isinstance(raw, str):
        models, keys = raw
        model_ids = [normalize_model_id(m) for m in models]
        local_keys = [str(k) for k in keys]
        if len(model_ids) != len(local_keys):
            raise MalformedXrefEncoding(len(model_ids), len(local_keys))
        return model_ids, local_keys

    data = decode_websafe(raw)
    records, remainder = divmod(len(data), XREF_RECORD_SIZE)
    if remainder:
        # a trailing partial record starts a model id with no matching key
        raise MalformedXrefEncoding(records + 1, records)
    model_ids: List[ModelId] = []
    local_keys: List[LocalKey] = []
    for offset in range(0, len(data), XREF_RECORD_SIZE):
        model_ids.append(MODEL_URN_PREFIX + encode_websafe(data[offset : offset + MODEL_ID_SIZE]))
        local_keys.append(encode_websafe(data[offset + MODEL_ID_SIZE : offset + XREF_RECORD_SIZE]))
    return model_ids, local_keys


def to_full_key(model_id: str, key: str, *, is_logical: bool = False) -> FullKey:
    """Qualify ``key`` with its model; flagged keys are passed through."""
    data = decode_websafe(key)
    if len(data) == ELEMENT_ID_SIZE:
        flags = ElementFlags.FamilyType if is_logical else ElementFlags.SimpleElement
        data = struct.pack(">i", flags) + data
    elif len(data) != ELEMENT_ID_WITH_FLAGS_SIZE:
        raise ValueError(f"Unexpected element key length {len(data)} for '{key}'")
    return FullKey(model_id=normalize_model_id(model_id), key=encode_websafe(data))


def to_short_key(key: str) -> LocalKey:
    data = decode_websafe(key)
    if len(data) == ELEMENT_ID_WITH_FLAGS_SIZE:
        data = data[ELEMENT_FLAGS_SIZE:]
    return encode_websafe(data)


def key_flags(key: str) -> int:
    """Element flags carried by a flagged key (``SimpleElement`` for short keys)."""
    data = decode_websafe(key)
    if len(data) != ELEMENT_ID_WITH_FLAGS_SIZE:
        return ElementFlags.SimpleElement
    return struct.unpack(">i", data[:ELEMENT_FLAGS_SIZE])[0]


__all__ = [
    "ElementFlags",
    "FullKey",
    "LocalKey",
    "ModelId",
    "decode_local_array",
    "decode_xref_array",
    "default_model_id",
    "is_default_model",
    "key_flags",
    "normalize_model_id",
    "to_full_key",
    "to_short_key",
]
