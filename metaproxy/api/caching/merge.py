from __future__ import annotations

"""
metaproxy/api/caching/merge.py

Upsert de colecciones (temporadas, episodios, guest stars) dentro de una lista
almacenada bajo una única clave.

Reglas:
- Búsqueda lineal por id natural; si existe se reemplaza EN SU POSICIÓN, si no
  se añade al final. El resto de elementos no se toca.
- Episodios: los campos escalares se reemplazan, pero `guest_stars` se arrastra
  del elemento previo salvo que el entrante traiga su propia lista; en ese caso
  cada guest star se hace upsert por id sobre la lista arrastrada.
- Elementos mal formados (no dict, o sin id entero) se saltan; el resto del
  lote se aplica igualmente.

Sin I/O: todo opera sobre listas en memoria. RecordStore decide cuándo leer y
escribir.
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from metaproxy.api.logging_config import get_logger
from metaproxy.api.services import metrics

logger = get_logger("merge")

Record = dict[str, Any]
MergeFn = Callable[[Record | None, Record], Record]

GUEST_STARS_FIELD = "guest_stars"


def coerce_id(value: object) -> int | None:
    """Ids numéricos: int (no bool) o string de dígitos."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if s.lstrip("-").isdigit():
            return int(s)
    return None


def find_index(items: list[Record], child_id: object, *, id_field: str = "id") -> int:
    wanted = coerce_id(child_id)
    if wanted is None:
        return -1
    for idx, item in enumerate(items):
        if isinstance(item, Mapping) and coerce_id(item.get(id_field)) == wanted:
            return idx
    return -1


def upsert_by_id(items: list[Record], item: Record, *, id_field: str = "id") -> list[Record]:
    """Devuelve una lista nueva con `item` reemplazado en su sitio o añadido al final."""
    out = list(items)
    idx = find_index(out, item.get(id_field), id_field=id_field)
    if idx >= 0:
        out[idx] = item
    else:
        out.append(item)
    return out


def replace_element(existing: Record | None, incoming: Record) -> Record:
    return dict(incoming)


def merge_guest_stars(current: Iterable[object], incoming: Iterable[object]) -> list[Record]:
    out: list[Record] = [dict(g) for g in current if isinstance(g, Mapping)]
    for guest in incoming:
        if not isinstance(guest, Mapping) or coerce_id(guest.get("id")) is None:
            metrics.inc("merge_skipped_total", 1)
            logger.debug("merge_skip_guest", extra={"guest": repr(guest)[:200]})
            continue
        out = upsert_by_id(out, dict(guest))
    return out


def merge_episode(existing: Record | None, incoming: Record) -> Record:
    merged = {k: v for k, v in incoming.items() if k != GUEST_STARS_FIELD}

    carried: list[object] = []
    if existing is not None:
        prev = existing.get(GUEST_STARS_FIELD)
        if isinstance(prev, list):
            carried = prev

    explicit = incoming.get(GUEST_STARS_FIELD)
    if isinstance(explicit, list):
        merged[GUEST_STARS_FIELD] = merge_guest_stars(carried, explicit)
    else:
        merged[GUEST_STARS_FIELD] = [dict(g) for g in carried if isinstance(g, Mapping)]
    return merged


def ensure_placeholder(items: list[Record], placeholder: Record, *, id_field: str = "id") -> tuple[list[Record], int]:
    """
    Garantiza que existe un elemento con el id de `placeholder`.

    Devuelve (lista, índice). Si hubo que insertarlo, va al final.
    """
    idx = find_index(items, placeholder.get(id_field), id_field=id_field)
    if idx >= 0:
        return list(items), idx
    out = list(items)
    out.append(dict(placeholder))
    return out, len(out) - 1


def merge_batch(
    current: list[Record],
    incoming: Iterable[object],
    *,
    merge: MergeFn,
    id_field: str = "id",
    stamp: Callable[[Record], Record] | None = None,
) -> tuple[list[Record], list[Record]]:
    """
    Aplica un lote entrante sobre `current`.

    Returns: (lista_resultante, elementos_escritos_en_orden_de_entrada)
    """
    out = [dict(item) for item in current if isinstance(item, Mapping)]
    written: list[Record] = []

    for raw in incoming:
        if not isinstance(raw, Mapping) or coerce_id(raw.get(id_field)) is None:
            metrics.inc("merge_skipped_total", 1)
            logger.warning("merge_skip_element", extra={"id_field": id_field, "element": repr(raw)[:200]})
            continue

        element = dict(raw)
        if stamp is not None:
            element = stamp(element)

        idx = find_index(out, element.get(id_field), id_field=id_field)
        existing = out[idx] if idx >= 0 else None
        merged = merge(existing, element)
        if idx >= 0:
            out[idx] = merged
        else:
            out.append(merged)
        written.append(merged)

    return out, written
