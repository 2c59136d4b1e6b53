"""
app.py
Streamlit registry of irmãos (Caderneta Virtual) backed by Supabase.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from dataclasses import fields, replace

import streamlit as st

import auth
import cep
import db
import utils
from config import load_settings
from errors import AppError
from models import (
    MARITAL_STATUS,
    HistoryMode,
    HistoryState,
    InvalidTransition,
    ListState,
    PersonForm,
    PurchaseForm,
    ViewMode,
    transition,
)

SETTINGS = load_settings()

logging.basicConfig(
    level=SETTINGS.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("caderneta")

st.set_page_config(page_title="Caderneta Virtual", layout="wide")


def init_once():
    defaults = {
        "route": auth.LIST,
        "person_id": None,
        "banner": None,
        "list_state": ListState(),
        "add_form": PersonForm(),
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_client():
    if "client" not in st.session_state:
        st.session_state.client = db.get_client(SETTINGS)
    return st.session_state.client


def get_gate() -> auth.SessionGate:
    # one subscription per browser session, released on logout
    if "gate" not in st.session_state:
        st.session_state.gate = auth.SessionGate(get_client()).start()
    return st.session_state.gate


# ---------- Banner / navigation ----------

def set_banner(message: str | None):
    st.session_state.banner = message


def show_banner():
    if st.session_state.banner:
        st.error(st.session_state.banner)


def navigate(route: str, person_id: str | None = None):
    st.session_state.route = route
    st.session_state.person_id = person_id
    set_banner(None)
    if route == auth.ADD:
        set_form("add_form", PersonForm())
    if route == auth.DETAIL:
        st.session_state.pop("detail_id", None)


# ---------- Form binding ----------

def set_form(form_key: str, form):
    """Replace the form value and reseed every widget bound to it."""
    st.session_state[form_key] = form
    for f in fields(form):
        st.session_state[f"{form_key}.{f.name}"] = getattr(form, f.name)


def commit_field(form_key: str, name: str, mask=None, after=None):
    widget_key = f"{form_key}.{name}"
    value = st.session_state[widget_key]
    if mask:
        value = mask(value)
        st.session_state[widget_key] = value
    st.session_state[form_key] = replace(st.session_state[form_key], **{name: value})
    if after:
        after(form_key)


def _seed(form_key: str, name: str) -> str:
    widget_key = f"{form_key}.{name}"
    if widget_key not in st.session_state:
        st.session_state[widget_key] = getattr(st.session_state[form_key], name)
    return widget_key


def text_field(form_key: str, name: str, label: str, *, mask=None, after=None, disabled=False, **kwargs):
    st.text_input(
        label,
        key=_seed(form_key, name),
        on_change=commit_field,
        args=(form_key, name, mask, after),
        disabled=disabled,
        **kwargs,
    )


def fill_address(form_key: str):
    form = st.session_state[form_key]
    address = cep.lookup_cep(form.cep, SETTINGS.viacep_url, SETTINGS.cep_timeout)
    if address is None:
        return
    set_form(
        form_key,
        replace(
            form,
            rua=address.rua or form.rua,
            bairro=address.bairro or form.bairro,
            cidade=address.cidade or form.cidade,
            uf=address.uf or form.uf,
        ),
    )


def person_fields(form_key: str, disabled: bool = False):
    form: PersonForm = st.session_state[form_key]

    st.subheader("Dados pessoais")
    text_field(form_key, "nome", "Nome", disabled=disabled)
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        text_field(form_key, "idade", "Idade", disabled=disabled)
    with c2:
        text_field(form_key, "tempo_crente_anos", "Tempo de crente (anos)", disabled=disabled)
    with c3:
        text_field(form_key, "numero_prontuario", "Nº prontuário", disabled=disabled)
    with c4:
        text_field(form_key, "data_nascimento", "Data de nascimento", mask=utils.mask_date,
                   placeholder="DD/MM/AAAA", disabled=disabled)
    text_field(form_key, "congregacao_comum", "Comum congregação", disabled=disabled)

    st.subheader("Estado civil")
    st.radio(
        "Estado civil",
        options=list(MARITAL_STATUS),
        format_func=MARITAL_STATUS.get,
        key=_seed(form_key, "estado_civil"),
        on_change=commit_field,
        args=(form_key, "estado_civil"),
        horizontal=True,
        disabled=disabled,
        label_visibility="collapsed",
    )
    spouse_off = disabled or not form.is_married
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        text_field(form_key, "conjugue_nome", "Nome do cônjuge", disabled=spouse_off)
    with c2:
        text_field(form_key, "conjugue_idade", "Idade cônjuge", disabled=spouse_off)
    with c3:
        text_field(form_key, "conjugue_tempo_crente_anos", "Tempo de crente cônjuge (anos)", disabled=spouse_off)
    with c4:
        text_field(form_key, "conjugue_data_nascimento", "Nascimento cônjuge", mask=utils.mask_date,
                   placeholder="DD/MM/AAAA", disabled=spouse_off)

    st.subheader("Endereço")
    c1, c2, c3 = st.columns([1, 3, 1])
    with c1:
        text_field(form_key, "cep", "CEP", mask=utils.mask_cep, after=fill_address, disabled=disabled)
    with c2:
        text_field(form_key, "rua", "Rua", disabled=disabled)
    with c3:
        text_field(form_key, "numero_residencia", "Número", disabled=disabled)
    c1, c2, c3 = st.columns([2, 2, 1])
    with c1:
        text_field(form_key, "bairro", "Bairro", disabled=disabled)
    with c2:
        text_field(form_key, "cidade", "Cidade", disabled=disabled)
    with c3:
        text_field(form_key, "uf", "UF", max_chars=2, disabled=disabled)

    st.subheader("Financeiro")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        text_field(form_key, "valor_aluguel", "Aluguel", mask=utils.mask_brl, disabled=disabled)
    with c2:
        text_field(form_key, "salario", "Salário", mask=utils.mask_brl, disabled=disabled)
    with c3:
        text_field(form_key, "valor_aposentadoria", "Aposentadoria", mask=utils.mask_brl, disabled=disabled)
    with c4:
        text_field(form_key, "valor_mensalidade", "Mensalidade", mask=utils.mask_brl, disabled=disabled)

    st.subheader("Dependentes")
    st.checkbox(
        "Possui dependentes",
        key=_seed(form_key, "possui_dependentes"),
        on_change=commit_field,
        args=(form_key, "possui_dependentes"),
        disabled=disabled,
    )
    deps_off = disabled or not form.possui_dependentes
    c1, c2 = st.columns(2)
    with c1:
        text_field(form_key, "filhos_idades", "Idades dos filhos (vírgula)", disabled=deps_off)
    with c2:
        text_field(form_key, "filhas_idades", "Idades das filhas (vírgula)", disabled=deps_off)
    c1, c2, c3 = st.columns(3)
    with c1:
        text_field(form_key, "dependentes_em_casa", "Dependentes morando em casa", disabled=deps_off)
    with c2:
        text_field(form_key, "dependentes_trabalham", "Dependentes que trabalham", disabled=deps_off)
    with c3:
        text_field(form_key, "salario_dependentes", "Salário dos dependentes", mask=utils.mask_brl,
                   disabled=deps_off)


# ---------- Login ----------

def login_screen():
    st.title("📒 Caderneta Virtual")

    if not SETTINGS.has_supabase_config:
        st.warning("Defina SUPABASE_URL e SUPABASE_ANON_KEY no arquivo .env para habilitar o login.")

    mode = st.radio("Acesso", ["Entrar", "Criar conta"], horizontal=True, label_visibility="collapsed")
    signup = mode == "Criar conta"
    st.caption("Crie sua conta para acessar" if signup else "Faça login para continuar")

    with st.form("login"):
        email = st.text_input("E-mail", placeholder="seuemail@exemplo.com")
        password = st.text_input("Senha", type="password")
        submitted = st.form_submit_button(
            "Criar conta" if signup else "Entrar",
            type="primary",
            disabled=not SETTINGS.has_supabase_config,
        )

    if not submitted:
        return
    if not email.strip() or not password:
        st.error("Informe e-mail e senha.")
        return

    try:
        client = get_client()
        gate = get_gate()
        if signup:
            session = auth.sign_up(client, email, password)
            if session is None:
                st.info("Conta criada. Confirme seu e-mail antes de entrar.")
                return
        else:
            session = auth.sign_in(client, email, password)
    except AppError as e:
        st.error(e.message)
        return

    gate.session = session or gate.session
    navigate(auth.LIST)
    st.rerun()


def logout():
    client = get_client()
    try:
        auth.sign_out(client)
    except AppError as e:
        logger.warning("Sign out failed: %s", e.message)
    gate = st.session_state.pop("gate", None)
    if gate is not None:
        gate.close()
    for key in list(st.session_state.keys()):
        if key != "client":
            del st.session_state[key]


# ---------- Record list ----------

def set_query():
    st.session_state.list_state = st.session_state.list_state.with_query(st.session_state.list_query)


def change_page(step: int):
    state: ListState = st.session_state.list_state
    st.session_state.list_state = state.next_page() if step > 0 else state.previous_page()


def list_page():
    st.header("📒 Caderneta Virtual")

    c1, c2, c3 = st.columns([4, 1, 1])
    with c1:
        st.text_input(
            "Buscar",
            key="list_query",
            value=st.session_state.list_state.query,
            placeholder="Buscar por nome ou Nº prontuário",
            on_change=set_query,
            label_visibility="collapsed",
        )
    with c2:
        st.button("Adicionar irmão(ã)", on_click=navigate, args=(auth.ADD,), use_container_width=True)
    with c3:
        st.button("Sair", on_click=logout, use_container_width=True)

    st.divider()
    show_banner()

    state: ListState = st.session_state.list_state
    try:
        page = db.search_persons(get_client(), state.query, state.page)
    except AppError as e:
        st.error(e.message)
        # keep a way back from a page that failed to load
        pagination_controls("", has_previous=state.page > 1, has_next=False)
        return
    if page.page != state.page:
        st.session_state.list_state = replace(state, page=page.page)

    if not page.rows:
        st.caption("Nenhum registro")
    else:
        event = st.dataframe(
            utils.persons_to_dataframe(page.rows),
            use_container_width=True,
            hide_index=True,
            on_select="rerun",
            selection_mode="single-row",
            key="persons_table",
        )
        selected = event.selection.rows
        if selected:
            navigate(auth.DETAIL, page.rows[selected[0]]["id"])
            st.rerun()

    pagination_controls(page.caption(), page.has_previous, page.has_next)


def pagination_controls(caption: str, has_previous: bool, has_next: bool):
    c1, c2, c3 = st.columns([4, 1, 1])
    with c1:
        if caption:
            st.caption(caption)
    with c2:
        st.button("Página anterior", disabled=not has_previous, on_click=change_page, args=(-1,),
                  use_container_width=True)
    with c3:
        st.button("Próxima página", disabled=not has_next, on_click=change_page, args=(1,),
                  use_container_width=True)


# ---------- Record creation ----------

def submit_add():
    form: PersonForm = st.session_state.add_form
    errors = utils.validate_person_form(form)
    if errors:
        set_banner(" ".join(errors))
        return
    payload = utils.build_person_payload(form, created_by=st.session_state.gate.user_id)
    try:
        db.insert_person(get_client(), payload)
    except AppError as e:
        set_banner(e.message)
        return
    navigate(auth.LIST)


def add_page():
    st.header("➕ Adicionar irmão(ã)")
    st.divider()
    show_banner()

    person_fields("add_form")

    st.divider()
    c1, c2, _ = st.columns([1, 1, 4])
    with c1:
        st.button("Cancelar", on_click=navigate, args=(auth.LIST,), use_container_width=True)
    with c2:
        st.button("Salvar", type="primary", on_click=submit_add, use_container_width=True)


# ---------- Record detail / edit ----------

def load_detail(person_id: str):
    client = get_client()
    row = db.get_person(client, person_id)
    st.session_state.detail_row = row
    st.session_state.detail_mode = ViewMode.VIEWING
    st.session_state.history_state = HistoryState()
    st.session_state.purchases = db.list_purchases(client, person_id)
    set_form("detail_form", utils.form_from_person(row))
    st.session_state.detail_id = person_id


def move(event: str):
    try:
        st.session_state.detail_mode = transition(st.session_state.detail_mode, event)
    except InvalidTransition as e:
        logger.warning("Ignored detail action: %s", e)
        return
    if event == "cancel":
        # discard edits: back to the last fetched row
        set_form("detail_form", utils.form_from_person(st.session_state.detail_row))
    set_banner(None)


def save_detail():
    form: PersonForm = st.session_state.detail_form
    errors = utils.validate_person_form(form)
    if errors:
        set_banner(" ".join(errors))
        return
    client = get_client()
    person_id = st.session_state.detail_id
    try:
        db.update_person(client, person_id, utils.build_person_payload(form))
        row = db.get_person(client, person_id)
    except AppError as e:
        set_banner(e.message)
        return
    st.session_state.detail_row = row
    set_form("detail_form", utils.form_from_person(row))
    st.session_state.detail_mode = transition(st.session_state.detail_mode, "saved")
    set_banner(None)


def confirm_delete_person():
    try:
        db.delete_person(get_client(), st.session_state.detail_id)
    except AppError as e:
        set_banner(e.message)
        return
    navigate(auth.LIST)


def refresh_purchases():
    st.session_state.purchases = db.list_purchases(get_client(), st.session_state.detail_id)


def open_purchase(purchase: dict | None = None):
    state: HistoryState = st.session_state.history_state
    try:
        if purchase is None:
            st.session_state.history_state = state.start_add()
            set_form("purchase_form", PurchaseForm(data=utils.today_br()))
        else:
            st.session_state.history_state = state.start_edit(purchase["id"])
            set_form("purchase_form", utils.form_from_purchase(purchase))
    except InvalidTransition as e:
        logger.warning("Ignored history action: %s", e)


def ask_delete_purchase(purchase_id: str):
    try:
        st.session_state.history_state = st.session_state.history_state.request_delete(purchase_id)
    except InvalidTransition as e:
        logger.warning("Ignored history action: %s", e)


def close_history():
    st.session_state.history_state = st.session_state.history_state.close()


def save_purchase():
    state: HistoryState = st.session_state.history_state
    form: PurchaseForm = st.session_state.purchase_form
    errors = utils.validate_purchase_form(form)
    if errors:
        set_banner(" ".join(errors))
        return
    client = get_client()
    payload = utils.build_purchase_payload(
        form, st.session_state.detail_id, created_by=st.session_state.gate.user_id
    )
    try:
        if state.purchase_id is None:
            db.insert_purchase(client, payload)
        else:
            db.update_purchase(client, state.purchase_id, payload)
        refresh_purchases()
    except AppError as e:
        set_banner(e.message)
        return
    st.session_state.history_state = state.close()
    set_banner(None)


def confirm_delete_purchase():
    state: HistoryState = st.session_state.history_state
    try:
        db.delete_purchase(get_client(), state.purchase_id)
        refresh_purchases()
    except AppError as e:
        set_banner(e.message)
        return
    st.session_state.history_state = state.close()
    set_banner(None)


def purchase_form_fields():
    c1, c2, c3 = st.columns([1, 3, 1])
    with c1:
        text_field("purchase_form", "data", "Data", mask=utils.mask_date, placeholder="DD/MM/AAAA")
    with c2:
        text_field("purchase_form", "descricao", "Descrição")
    with c3:
        text_field("purchase_form", "valor", "Valor", mask=utils.mask_brl)
    c1, c2, _ = st.columns([1, 1, 4])
    with c1:
        st.button("Cancelar", key="purchase_cancel", on_click=close_history, use_container_width=True)
    with c2:
        st.button("Salvar compra", type="primary", on_click=save_purchase, use_container_width=True)


def history_section():
    st.subheader("🧾 Histórico de compras")
    purchases: list[dict] = st.session_state.purchases
    state: HistoryState = st.session_state.history_state

    st.button("Adicionar compra", on_click=open_purchase, disabled=not state.is_idle)
    if state.has_open_form:
        purchase_form_fields()

    if not purchases:
        st.caption("Nenhuma compra registrada.")
        return

    for p in purchases:
        c1, c2, c3, c4, c5 = st.columns([1, 3, 1, 1, 1])
        c1.write(utils.format_date_br(p.get("data")))
        c2.write(p.get("descricao") or "")
        c3.write(utils.format_brl(p.get("valor")))
        with c4:
            st.button("Editar", key=f"purchase_edit_{p['id']}", on_click=open_purchase, args=(p,),
                      disabled=not state.is_idle)
        with c5:
            st.button("Excluir", key=f"purchase_delete_{p['id']}", on_click=ask_delete_purchase,
                      args=(p["id"],), disabled=not state.is_idle)
        if state.mode is HistoryMode.CONFIRM_DELETE and state.purchase_id == p["id"]:
            st.warning("Excluir esta compra?")
            d1, d2, _ = st.columns([1, 1, 4])
            with d1:
                st.button("Confirmar", key="purchase_confirm", type="primary",
                          on_click=confirm_delete_purchase, use_container_width=True)
            with d2:
                st.button("Cancelar", key="purchase_keep", on_click=close_history, use_container_width=True)

    st.metric("Total", utils.format_brl(utils.purchases_total(purchases)))
    st.download_button(
        "Baixar histórico (CSV)",
        data=utils.purchases_to_csv_bytes(purchases),
        file_name="historico.csv",
        mime="text/csv",
    )


def detail_page():
    st.header("👤 Detalhes do irmão(ã)")
    st.divider()

    person_id = st.session_state.person_id
    if st.session_state.get("detail_id") != person_id:
        try:
            load_detail(person_id)
        except AppError as e:
            st.error(e.message)
            st.button("Voltar", on_click=navigate, args=(auth.LIST,))
            return

    show_banner()
    mode: ViewMode = st.session_state.detail_mode
    row = st.session_state.detail_row
    st.caption(
        f"Endereço: {row.get('endereco') or '-'} | "
        f"Cadastrado em: {utils.format_date_br((row.get('created_at') or '')[:10])}"
    )

    person_fields("detail_form", disabled=mode is not ViewMode.EDITING)

    st.divider()
    if mode is ViewMode.VIEWING:
        c1, c2, c3, _ = st.columns([1, 1, 1, 3])
        with c1:
            st.button("Voltar", on_click=navigate, args=(auth.LIST,), use_container_width=True)
        with c2:
            st.button("Editar", type="primary", on_click=move, args=("edit",), use_container_width=True)
        with c3:
            st.button("Excluir", on_click=move, args=("request_delete",), use_container_width=True)
    elif mode is ViewMode.EDITING:
        c1, c2, _ = st.columns([1, 1, 4])
        with c1:
            st.button("Cancelar", on_click=move, args=("cancel",), use_container_width=True)
        with c2:
            st.button("Salvar", type="primary", on_click=save_detail, use_container_width=True)
    else:
        st.warning("Excluir este irmão(ã)? O histórico de compras também será removido.")
        c1, c2, _ = st.columns([1, 1, 4])
        with c1:
            st.button("Cancelar", on_click=move, args=("cancel",), use_container_width=True)
        with c2:
            st.button("Confirmar exclusão", type="primary", on_click=confirm_delete_person,
                      use_container_width=True)

    st.divider()
    history_section()


def main_app(gate: auth.SessionGate, route: str):
    st.sidebar.title("📒 Caderneta Virtual")
    st.sidebar.caption(f"Conectado como: {gate.email or '-'}")
    st.sidebar.button("Sair", key="sidebar_logout", on_click=logout)

    if route == auth.ADD:
        add_page()
    elif route == auth.DETAIL and st.session_state.person_id:
        detail_page()
    else:
        list_page()


# --------- App entry ---------

def run():
    init_once()

    if not SETTINGS.has_supabase_config:
        login_screen()
        return

    try:
        gate = get_gate()
    except AppError as e:
        st.error(e.message)
        return

    route = auth.resolve_route(st.session_state.route, gate.is_authenticated)
    st.session_state.route = route
    if route == auth.LOGIN:
        login_screen()
        return

    main_app(gate, route)


if __name__ == "__main__":
    run()
