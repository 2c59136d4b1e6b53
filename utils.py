"""
utils.py
Input masks (BRL, dates, CEP), validation, payload builders, exports.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import pandas as pd

from models import MARITAL_STATUS, PersonForm, PurchaseForm

_NON_DIGIT = re.compile(r"\D")
_LEADING_ZEROS = re.compile(r"^0+(?=\d)")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


# ---------- Masks ----------

def digits_only(text: str | None) -> str:
    return _NON_DIGIT.sub("", text or "")


def mask_cep(text: str | None) -> str:
    d = digits_only(text)[:8]
    if len(d) <= 5:
        return d
    return f"{d[:5]}-{d[5:]}"


def mask_brl(text: str | None) -> str:
    """
    Treat the typed digits as cents: "123456" -> "R$ 1.234,56".
    Empty or all-zero input gives "R$ 0,00".
    """
    d = _LEADING_ZEROS.sub("", digits_only(text))
    cents = d.rjust(3, "0")
    int_part, dec_part = cents[:-2], cents[-2:]
    grouped = f"{int(int_part):,}".replace(",", ".")
    return f"R$ {grouped},{dec_part}"


def parse_brl(text: str | None) -> float:
    d = digits_only(text)
    if not d:
        return 0
    return int(d) / 100


def format_brl(value: float | None) -> str:
    """Format a number as pt-BR currency: R$ 1.234,56 / -R$ 1.234,56"""
    # round before picking the sign so -0.001 shows as R$ 0,00
    val = round(float(value), 2) if value is not None else 0.0
    sign = "-" if val < 0 else ""
    return f"{sign}R$ {abs(val):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def amount_to_mask(value) -> str:
    # Masked input string from a stored amount, without going through format_brl
    if value is None:
        return mask_brl("")
    try:
        cents = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return mask_brl("")
    return mask_brl(str(abs(int(cents))))


def mask_date(text: str | None) -> str:
    d = digits_only(text)[:8]
    dd, mm, yyyy = d[:2], d[2:4], d[4:8]
    out = dd
    if mm:
        out += f"/{mm}"
    if yyyy:
        out += f"/{yyyy}"
    return out


def parse_date(text: str | None) -> str | None:
    """DD/MM/YYYY (any separators) -> YYYY-MM-DD, or None unless exactly 8 digits."""
    d = digits_only(text)
    if len(d) != 8:
        return None
    return f"{d[4:8]}-{d[2:4]}-{d[:2]}"


def iso_to_date_br(text: str | None) -> str:
    m = _ISO_DATE.match(text or "")
    if not m:
        return ""
    yyyy, mm, dd = m.groups()
    return f"{dd}/{mm}/{yyyy}"


def format_date_br(text: str | None) -> str:
    if not text:
        return "-"
    return iso_to_date_br(text)


# ---------- Dates ----------

def today_br() -> str:
    return date.today().strftime("%d/%m/%Y")


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def is_valid_date_br(text: str) -> bool:
    iso = parse_date(text)
    if iso is None:
        return False
    try:
        parse_iso(iso)
    except ValueError:
        return False
    return True


# ---------- Numbers, ages, address ----------

def to_int(text: str | None) -> int | None:
    s = (text or "").strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def _number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def parse_ages(text: str | None) -> list:
    """
    "3, 7,, x, -1" -> [3, 7]
    Blank entries, non-numbers, non-finite and negative values are dropped.
    """
    ages = []
    for part in (text or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            n = float(part)
        except ValueError:
            continue
        if math.isfinite(n) and n >= 0:
            ages.append(_number(n))
    return ages


def format_ages(values) -> str:
    return ", ".join(str(_number(v)) for v in (values or []))


def compose_address(rua: str, numero: str, bairro: str, cidade: str, uf: str) -> str:
    city_uf = "/".join(p for p in (cidade.strip(), uf.strip()) if p)
    parts = [rua.strip(), numero.strip(), bairro.strip(), city_uf]
    return ", ".join(p for p in parts if p)


# ---------- Validation ----------

def validate_person_form(form: PersonForm) -> list[str]:
    errors: list[str] = []
    if not form.nome.strip():
        errors.append("Nome é obrigatório.")
    if form.estado_civil not in MARITAL_STATUS:
        errors.append("Estado civil inválido.")

    numeric = [("idade", "Idade"), ("tempo_crente_anos", "Tempo de crente")]
    dates = [("data_nascimento", "Data de nascimento")]
    if form.is_married:
        numeric += [("conjugue_idade", "Idade do cônjuge"),
                    ("conjugue_tempo_crente_anos", "Tempo de crente do cônjuge")]
        dates.append(("conjugue_data_nascimento", "Data de nascimento do cônjuge"))
    if form.possui_dependentes:
        numeric += [("dependentes_em_casa", "Dependentes em casa"),
                    ("dependentes_trabalham", "Dependentes que trabalham")]

    for name, label in numeric:
        raw = getattr(form, name)
        if raw.strip() and to_int(raw) is None:
            errors.append(f"{label} deve ser um número inteiro.")
    for name, label in dates:
        raw = getattr(form, name)
        if raw.strip() and not is_valid_date_br(raw):
            errors.append(f"{label} inválida (use DD/MM/AAAA).")
    return errors


def validate_purchase_form(form: PurchaseForm) -> list[str]:
    errors: list[str] = []
    if not is_valid_date_br(form.data):
        errors.append("Data inválida (use DD/MM/AAAA).")
    if not form.descricao.strip():
        errors.append("Descrição é obrigatória.")
    if parse_brl(form.valor) <= 0:
        errors.append("Valor deve ser maior que zero.")
    return errors


# ---------- Payloads ----------

def _text(value: str) -> str | None:
    return value.strip() or None


def build_person_payload(form: PersonForm, created_by: str | None = None) -> dict:
    """
    Normalize a person form into a row for the persons table.
    Spouse fields are null unless married; dependents fields are null/zero
    unless possui_dependentes, whatever is left in those inputs.
    """
    married = form.is_married
    deps = form.possui_dependentes
    sons = parse_ages(form.filhos_idades) if deps else []
    daughters = parse_ages(form.filhas_idades) if deps else []

    payload = {
        "nome": _text(form.nome),
        "idade": to_int(form.idade),
        "tempo_crente_anos": to_int(form.tempo_crente_anos),
        "numero_prontuario": _text(form.numero_prontuario),
        "data_nascimento": parse_date(form.data_nascimento),
        "estado_civil": form.estado_civil if form.estado_civil in MARITAL_STATUS else "solteiro",
        "conjugue_nome": _text(form.conjugue_nome) if married else None,
        "conjugue_idade": to_int(form.conjugue_idade) if married else None,
        "conjugue_tempo_crente_anos": to_int(form.conjugue_tempo_crente_anos) if married else None,
        "conjugue_data_nascimento": parse_date(form.conjugue_data_nascimento) if married else None,
        "congregacao_comum": _text(form.congregacao_comum),
        "cep": mask_cep(form.cep) or None,
        "rua": _text(form.rua),
        "numero_residencia": _text(form.numero_residencia),
        "bairro": _text(form.bairro),
        "cidade": _text(form.cidade),
        "uf": _text(form.uf.upper()),
        "endereco": compose_address(form.rua, form.numero_residencia, form.bairro, form.cidade, form.uf.upper()) or None,
        "valor_aluguel": parse_brl(form.valor_aluguel),
        "salario": parse_brl(form.salario),
        "valor_aposentadoria": parse_brl(form.valor_aposentadoria),
        "valor_mensalidade": parse_brl(form.valor_mensalidade),
        "possui_dependentes": deps,
        "dependentes_em_casa": (to_int(form.dependentes_em_casa) or 0) if deps else 0,
        "filhos_idades": sons or None,
        "filhas_idades": daughters or None,
        "filhos_qtd": len(sons),
        "filhas_qtd": len(daughters),
        "dependentes_trabalham": (to_int(form.dependentes_trabalham) or 0) if deps else 0,
        "salario_dependentes": parse_brl(form.salario_dependentes) if deps else 0,
    }
    if created_by:
        payload["created_by"] = created_by
    return payload


def build_purchase_payload(form: PurchaseForm, person_id: str, created_by: str | None = None) -> dict:
    payload = {
        "person_id": person_id,
        "data": parse_date(form.data),
        "descricao": form.descricao.strip(),
        "valor": parse_brl(form.valor),
    }
    if created_by:
        payload["created_by"] = created_by
    return payload


def _str(value) -> str:
    return "" if value is None else str(value)


def form_from_person(row: dict) -> PersonForm:
    return PersonForm(
        nome=_str(row.get("nome")),
        idade=_str(row.get("idade")),
        tempo_crente_anos=_str(row.get("tempo_crente_anos")),
        numero_prontuario=_str(row.get("numero_prontuario")),
        data_nascimento=iso_to_date_br(row.get("data_nascimento")),
        estado_civil=row.get("estado_civil") or "solteiro",
        conjugue_nome=_str(row.get("conjugue_nome")),
        conjugue_idade=_str(row.get("conjugue_idade")),
        conjugue_tempo_crente_anos=_str(row.get("conjugue_tempo_crente_anos")),
        conjugue_data_nascimento=iso_to_date_br(row.get("conjugue_data_nascimento")),
        congregacao_comum=_str(row.get("congregacao_comum")),
        cep=mask_cep(row.get("cep")),
        rua=_str(row.get("rua")),
        numero_residencia=_str(row.get("numero_residencia")),
        bairro=_str(row.get("bairro")),
        cidade=_str(row.get("cidade")),
        uf=_str(row.get("uf")),
        valor_aluguel=amount_to_mask(row.get("valor_aluguel")),
        salario=amount_to_mask(row.get("salario")),
        valor_aposentadoria=amount_to_mask(row.get("valor_aposentadoria")),
        valor_mensalidade=amount_to_mask(row.get("valor_mensalidade")),
        possui_dependentes=bool(row.get("possui_dependentes")),
        dependentes_em_casa=_str(row.get("dependentes_em_casa") or ""),
        filhos_idades=format_ages(row.get("filhos_idades")),
        filhas_idades=format_ages(row.get("filhas_idades")),
        dependentes_trabalham=_str(row.get("dependentes_trabalham") or ""),
        salario_dependentes=amount_to_mask(row.get("salario_dependentes")),
    )


def form_from_purchase(row: dict) -> PurchaseForm:
    return PurchaseForm(
        data=iso_to_date_br(row.get("data")),
        descricao=_str(row.get("descricao")),
        valor=amount_to_mask(row.get("valor")),
    )


# ---------- Tables / exports ----------

PERSON_COLUMNS = {
    "nome": "Nome",
    "idade": "Idade",
    "estado_civil": "Estado civil",
    "numero_prontuario": "Nº prontuário",
    "congregacao_comum": "Comum",
    "endereco": "Endereço",
    "numero_residencia": "Número",
}


def persons_to_dataframe(rows: list[dict]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=list(PERSON_COLUMNS), dtype=object)
    df["estado_civil"] = df["estado_civil"].map(MARITAL_STATUS)
    df = df.astype(object).where(df.notna(), "-")
    return df.rename(columns=PERSON_COLUMNS)


def purchases_to_dataframe(rows: list[dict]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=["Data", "Descrição", "Valor"])
    return pd.DataFrame(
        {
            "Data": [format_date_br(r.get("data")) for r in rows],
            "Descrição": [r.get("descricao") or "" for r in rows],
            "Valor": [format_brl(r.get("valor")) for r in rows],
        }
    )


def purchases_total(rows: list[dict]) -> float:
    if not rows:
        return 0.0
    return float(pd.Series([r.get("valor") or 0 for r in rows], dtype="float64").sum())


def purchases_to_csv_bytes(rows: list[dict]) -> bytes:
    df = pd.DataFrame(rows, columns=["data", "descricao", "valor"])
    return df.to_csv(index=False).encode("utf-8")
