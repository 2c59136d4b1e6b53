"""
cep.py
Best-effort address lookup by CEP (ViaCEP).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from config import DEFAULT_VIACEP_URL
from utils import digits_only

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    rua: str
    bairro: str
    cidade: str
    uf: str


def lookup_cep(cep: str, base_url: str = DEFAULT_VIACEP_URL, timeout: float = 5.0) -> Address | None:
    """
    Returns the address for an 8-digit CEP, or None when the CEP is incomplete,
    unknown to ViaCEP, or the service cannot be reached.
    """
    digits = digits_only(cep)
    if len(digits) != 8:
        return None
    try:
        resp = requests.get(f"{base_url}/{digits}/json/", timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("CEP lookup failed for %s: %s", digits, e)
        return None

    if not isinstance(data, dict) or data.get("erro"):
        logger.debug("CEP %s not found", digits)
        return None
    return Address(
        rua=data.get("logradouro") or "",
        bairro=data.get("bairro") or "",
        cidade=data.get("localidade") or "",
        uf=data.get("uf") or "",
    )
