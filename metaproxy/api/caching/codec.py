# (de)serialización JSON de valores en el backend
from __future__ import annotations

import json


def encode_json(value: object) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_json(raw: bytes) -> object:
    """Lanza ValueError si `raw` no es JSON UTF-8 válido."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(f"invalid utf-8: {exc}") from exc
    return json.loads(text)
