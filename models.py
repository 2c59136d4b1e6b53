"""
models.py
Lightweight domain helpers (marital status, form values, list paging, view states).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

# Stored value -> label shown in the radio group
MARITAL_STATUS = {
    "solteiro": "Solteiro(a)",
    "casado": "Casado(a)",
    "viuvo": "Viúvo(a)",
    "separado": "Separado(a)",
}
MARRIED = "casado"


@dataclass(frozen=True)
class PersonForm:
    # Display strings exactly as typed/masked in the inputs
    nome: str = ""
    idade: str = ""
    tempo_crente_anos: str = ""
    numero_prontuario: str = ""
    data_nascimento: str = ""
    estado_civil: str = "solteiro"
    conjugue_nome: str = ""
    conjugue_idade: str = ""
    conjugue_tempo_crente_anos: str = ""
    conjugue_data_nascimento: str = ""
    congregacao_comum: str = ""
    cep: str = ""
    rua: str = ""
    numero_residencia: str = ""
    bairro: str = ""
    cidade: str = ""
    uf: str = ""
    valor_aluguel: str = "R$ 0,00"
    salario: str = "R$ 0,00"
    valor_aposentadoria: str = "R$ 0,00"
    valor_mensalidade: str = "R$ 0,00"
    possui_dependentes: bool = False
    dependentes_em_casa: str = ""
    filhos_idades: str = ""
    filhas_idades: str = ""
    dependentes_trabalham: str = ""
    salario_dependentes: str = "R$ 0,00"

    @property
    def is_married(self) -> bool:
        return self.estado_civil == MARRIED


@dataclass(frozen=True)
class PurchaseForm:
    data: str = ""
    descricao: str = ""
    valor: str = "R$ 0,00"


@dataclass(frozen=True)
class PersonPage:
    rows: list[dict]
    total: int
    page: int
    page_size: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def first_index(self) -> int:
        # 1-based position of the first row shown
        if self.total == 0:
            return 0
        return min((self.page - 1) * self.page_size + 1, self.total)

    @property
    def last_index(self) -> int:
        return min(self.page * self.page_size, self.total)

    def caption(self) -> str:
        if self.total == 0:
            return "Mostrando 0 de 0"
        return f"Mostrando {self.first_index}–{self.last_index} de {self.total}"


@dataclass(frozen=True)
class ListState:
    query: str = ""
    page: int = 1

    def with_query(self, query: str) -> "ListState":
        if query == self.query:
            return self
        return ListState(query=query, page=1)

    def next_page(self) -> "ListState":
        return replace(self, page=self.page + 1)

    def previous_page(self) -> "ListState":
        return replace(self, page=max(1, self.page - 1))


class InvalidTransition(ValueError):
    pass


class ViewMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    CONFIRM_DELETE = "confirm_delete"


_MODE_TRANSITIONS = {
    (ViewMode.VIEWING, "edit"): ViewMode.EDITING,
    (ViewMode.EDITING, "cancel"): ViewMode.VIEWING,
    (ViewMode.EDITING, "saved"): ViewMode.VIEWING,
    (ViewMode.VIEWING, "request_delete"): ViewMode.CONFIRM_DELETE,
    (ViewMode.CONFIRM_DELETE, "cancel"): ViewMode.VIEWING,
}


def transition(mode: ViewMode, event: str) -> ViewMode:
    """Next member view mode, or InvalidTransition (e.g. editing while a delete is pending)."""
    try:
        return _MODE_TRANSITIONS[(mode, event)]
    except KeyError:
        raise InvalidTransition(f"cannot {event!r} while {mode.value}") from None


class HistoryMode(str, Enum):
    IDLE = "idle"
    ADDING = "adding"
    EDITING = "editing"
    CONFIRM_DELETE = "confirm_delete"


@dataclass(frozen=True)
class HistoryState:
    """Purchase-history dialog: at most one add/edit/delete in progress."""

    mode: HistoryMode = HistoryMode.IDLE
    purchase_id: str | None = None

    def _require_idle(self, action: str) -> None:
        if self.mode is not HistoryMode.IDLE:
            raise InvalidTransition(f"cannot {action} while {self.mode.value}")

    @property
    def is_idle(self) -> bool:
        return self.mode is HistoryMode.IDLE

    @property
    def has_open_form(self) -> bool:
        return self.mode in (HistoryMode.ADDING, HistoryMode.EDITING)

    def start_add(self) -> "HistoryState":
        self._require_idle("add")
        return HistoryState(HistoryMode.ADDING)

    def start_edit(self, purchase_id: str) -> "HistoryState":
        self._require_idle("edit")
        return HistoryState(HistoryMode.EDITING, purchase_id)

    def request_delete(self, purchase_id: str) -> "HistoryState":
        self._require_idle("delete")
        return HistoryState(HistoryMode.CONFIRM_DELETE, purchase_id)

    def close(self) -> "HistoryState":
        return HistoryState()
