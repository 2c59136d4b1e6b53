"""
db.py
Supabase helpers: client creation + persons/purchases table access.
"""

from __future__ import annotations

import logging
import math
import re
from contextlib import contextmanager

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from config import PAGE_SIZE, Settings
from errors import ConfigMissingError, RecordNotFoundError, StoreError
from models import PersonPage
from utils import now_iso

logger = logging.getLogger(__name__)

PERSONS = "persons"
PURCHASES = "purchases"

# PostgREST "or" filter syntax characters, plus "*" which it reads as a wildcard
_FILTER_SYNTAX = re.compile(r'[,()"*]')
# ilike wildcards, escaped to match literally
_LIKE_WILDCARDS = re.compile(r"([\\%_])")
# PostgREST error code for a range past the last row (HTTP 416)
RANGE_NOT_SATISFIABLE = "PGRST103"


def get_client(settings: Settings) -> Client:
    if not settings.has_supabase_config:
        raise ConfigMissingError()
    return create_client(settings.supabase_url, settings.supabase_key)


@contextmanager
def store_errors(action: str):
    """Turn client errors into StoreError with a message fit for the banner."""
    try:
        yield
    except APIError as e:
        logger.warning("Store error while trying to %s: %s", action, e.message)
        raise StoreError(e.message or f"Erro ao {action}.", code=e.code) from e
    except httpx.HTTPError as e:
        logger.error("Connection error while trying to %s: %s", action, e)
        raise StoreError(f"Falha de conexão ao {action}.") from e


# ---------- persons ----------

def search_term(text: str) -> str:
    """Filter text safe for an ilike clause: literal % and _ match themselves."""
    term = _FILTER_SYNTAX.sub(" ", text or "").strip()
    return _LIKE_WILDCARDS.sub(r"\\\1", term)


def last_page(total: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(total / page_size))


def _select_page(client: Client, term: str, page: int, page_size: int) -> tuple[list[dict], int]:
    start = (page - 1) * page_size
    query = client.table(PERSONS).select("*", count="exact")
    if term:
        query = query.or_(f"nome.ilike.%{term}%,numero_prontuario.ilike.%{term}%")
    with store_errors("carregar"):
        res = query.order("created_at", desc=True).range(start, start + page_size - 1).execute()
    return list(res.data or []), res.count or 0


def search_persons(client: Client, text: str = "", page: int = 1, page_size: int = PAGE_SIZE) -> PersonPage:
    """
    One page of persons, newest first, optionally filtered by a
    case-insensitive match on name or record number.

    A page past the end (records deleted since it was opened) comes back
    as the last page that still has rows.
    """
    page = max(1, page)
    term = search_term(text)

    fetched = page
    try:
        rows, total = _select_page(client, term, page, page_size)
    except StoreError as e:
        if e.code != RANGE_NOT_SATISFIABLE or page == 1:
            raise
        # the 416 carries no count; page 1 does
        fetched = 1
        rows, total = _select_page(client, term, fetched, page_size)

    page = min(page, last_page(total, page_size))
    if page != fetched:
        logger.info("Requested page is past the end, showing page %s", page)
        rows, total = _select_page(client, term, page, page_size)
    return PersonPage(rows=rows, total=total, page=page, page_size=page_size)


def get_person(client: Client, person_id: str) -> dict:
    with store_errors("carregar"):
        res = client.table(PERSONS).select("*").eq("id", person_id).limit(1).execute()
    if not res.data:
        raise RecordNotFoundError()
    return res.data[0]


def insert_person(client: Client, payload: dict) -> dict | None:
    with store_errors("salvar"):
        res = client.table(PERSONS).insert(payload).execute()
    logger.info("Person inserted: %s", payload.get("nome"))
    return res.data[0] if res.data else None


def update_person(client: Client, person_id: str, payload: dict) -> None:
    changes = {k: v for k, v in payload.items() if k != "created_by"}
    changes["updated_at"] = now_iso()
    with store_errors("salvar"):
        client.table(PERSONS).update(changes).eq("id", person_id).execute()
    logger.info("Person %s updated", person_id)


def delete_person(client: Client, person_id: str) -> None:
    with store_errors("excluir"):
        client.table(PERSONS).delete().eq("id", person_id).execute()
    logger.info("Person %s deleted", person_id)


# ---------- purchases ----------

def list_purchases(client: Client, person_id: str) -> list[dict]:
    with store_errors("carregar o histórico"):
        res = (
            client.table(PURCHASES)
            .select("*")
            .eq("person_id", person_id)
            .order("data", desc=True)
            .execute()
        )
    return list(res.data or [])


def insert_purchase(client: Client, payload: dict) -> None:
    with store_errors("salvar a compra"):
        client.table(PURCHASES).insert(payload).execute()
    logger.info("Purchase added for person %s", payload.get("person_id"))


def update_purchase(client: Client, purchase_id: str, payload: dict) -> None:
    # owner and creator never move
    changes = {k: v for k, v in payload.items() if k not in ("person_id", "created_by")}
    with store_errors("salvar a compra"):
        client.table(PURCHASES).update(changes).eq("id", purchase_id).execute()
    logger.info("Purchase %s updated", purchase_id)


def delete_purchase(client: Client, purchase_id: str) -> None:
    with store_errors("excluir a compra"):
        client.table(PURCHASES).delete().eq("id", purchase_id).execute()
    logger.info("Purchase %s deleted", purchase_id)
