"""
Tests for list paging and the detail/history view states.
"""

import pytest

from models import (
    HistoryMode,
    HistoryState,
    InvalidTransition,
    ListState,
    PersonForm,
    PersonPage,
    ViewMode,
    transition,
)


class TestPersonPage:
    def page(self, page, total=25):
        rows = [{"id": str(i)} for i in range(min(10, max(0, total - (page - 1) * 10)))]
        return PersonPage(rows=rows, total=total, page=page, page_size=10)

    def test_first_page(self):
        p = self.page(1)
        assert not p.has_previous
        assert p.has_next
        assert p.caption() == "Mostrando 1–10 de 25"

    def test_middle_page(self):
        p = self.page(2)
        assert p.has_previous
        assert p.has_next

    def test_last_page(self):
        p = self.page(3)
        assert p.has_previous
        assert not p.has_next
        assert (p.first_index, p.last_index) == (21, 25)

    def test_exact_multiple_has_no_next(self):
        assert not self.page(2, total=20).has_next

    def test_empty(self):
        p = self.page(1, total=0)
        assert not p.has_previous
        assert not p.has_next
        assert p.caption() == "Mostrando 0 de 0"


class TestListState:
    def test_new_query_resets_page(self):
        state = ListState(query="ana", page=3)
        assert state.with_query("jo") == ListState(query="jo", page=1)

    def test_same_query_keeps_page(self):
        state = ListState(query="ana", page=3)
        assert state.with_query("ana") is state

    def test_paging_never_goes_below_one(self):
        state = ListState().previous_page()
        assert state.page == 1
        assert state.next_page().next_page().page == 3


class TestViewMode:
    def test_edit_then_cancel(self):
        mode = transition(ViewMode.VIEWING, "edit")
        assert mode is ViewMode.EDITING
        assert transition(mode, "cancel") is ViewMode.VIEWING

    def test_save_returns_to_viewing(self):
        assert transition(ViewMode.EDITING, "saved") is ViewMode.VIEWING

    def test_delete_confirmation(self):
        mode = transition(ViewMode.VIEWING, "request_delete")
        assert mode is ViewMode.CONFIRM_DELETE
        assert transition(mode, "cancel") is ViewMode.VIEWING

    @pytest.mark.parametrize(
        "mode, event",
        [
            (ViewMode.CONFIRM_DELETE, "edit"),
            (ViewMode.EDITING, "request_delete"),
            (ViewMode.VIEWING, "saved"),
            (ViewMode.VIEWING, "cancel"),
        ],
    )
    def test_illegal_moves(self, mode, event):
        with pytest.raises(InvalidTransition):
            transition(mode, event)


class TestHistoryState:
    def test_add_and_close(self):
        state = HistoryState().start_add()
        assert state.mode is HistoryMode.ADDING
        assert state.has_open_form
        assert state.purchase_id is None
        assert state.close() == HistoryState()

    def test_edit_keeps_target(self):
        state = HistoryState().start_edit("purchase-7")
        assert state.mode is HistoryMode.EDITING
        assert state.purchase_id == "purchase-7"

    def test_delete_pending_blocks_other_actions(self):
        state = HistoryState().request_delete("purchase-7")
        assert not state.is_idle
        assert not state.has_open_form
        with pytest.raises(InvalidTransition):
            state.start_edit("purchase-8")
        with pytest.raises(InvalidTransition):
            state.start_add()

    def test_one_form_at_a_time(self):
        with pytest.raises(InvalidTransition):
            HistoryState().start_add().start_edit("purchase-1")


def test_person_form_is_immutable():
    form = PersonForm(nome="Ana")
    with pytest.raises(AttributeError):
        form.nome = "Outra"
