# derivación de claves de caché a partir de la URL de la request
from __future__ import annotations

from typing import Final
from urllib.parse import parse_qsl, urlencode, urlsplit

CREDENTIAL_PARAM: Final[str] = "api_key"


def derive_key(url: object, *, credential_param: str = CREDENTIAL_PARAM) -> str:
    """
    Clave canónica para una request: path + query filtrada y ordenada.

    - `url` puede ser una URL absoluta, un path con query, o cualquier objeto
      cuyo `str()` lo sea (p.ej. `starlette.datastructures.URL`).
    - Se descarta el parámetro de credenciales (comparación case-insensitive).
    - Orden estable por nombre (code points, sin locale): los duplicados se
      conservan en su orden relativo.
    """
    parts = urlsplit(str(url))
    path = parts.path or "/"

    wanted = credential_param.lower()
    pairs = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if name.lower() != wanted
    ]
    pairs.sort(key=lambda kv: kv[0])

    query = urlencode(pairs)
    return f"{path}?{query}" if query else path


def build_url(path: str, params: dict[str, object]) -> str:
    """Path + query sin parámetros vacíos (None o "")."""
    pairs = [(k, str(v)) for k, v in params.items() if v is not None and v != ""]
    query = urlencode(pairs)
    return f"{path}?{query}" if query else path
