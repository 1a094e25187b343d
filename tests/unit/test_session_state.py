from __future__ import annotations

import pytest

from burrow.engine import Role
from burrow.session import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    InvalidTransition,
    Session,
    SessionResult,
    SessionState,
)


def test_terminal_states_have_no_exits() -> None:
    for state in TERMINAL_STATES:
        assert state.terminal is True
        assert ALLOWED_TRANSITIONS[state] == frozenset()


def test_every_live_state_can_fail_or_cancel() -> None:
    for state, targets in ALLOWED_TRANSITIONS.items():
        if state.terminal:
            continue
        assert SessionState.FAILED in targets
        assert SessionState.CANCELLED in targets


def test_send_happy_path_skips_confirmation() -> None:
    session = Session(role=Role.SEND)
    for state in (
        SessionState.CODE_ALLOCATION,
        SessionState.CODE_ALLOCATED,
        SessionState.TRANSFERRING,
        SessionState.COMPLETED,
    ):
        session.advance(state)

    assert session.history[0] is SessionState.INIT
    assert session.history[-1] is SessionState.COMPLETED
    assert session.state.terminal is True


def test_receive_goes_through_confirmation() -> None:
    session = Session(role=Role.RECEIVE)
    session.advance(SessionState.CODE_ALLOCATION)
    session.advance(SessionState.CODE_ALLOCATED)
    session.advance(SessionState.CONFIRMATION)
    session.advance(SessionState.CANCELLED)

    assert session.state is SessionState.CANCELLED


def test_sender_cannot_enter_confirmation() -> None:
    session = Session(role=Role.SEND)
    session.advance(SessionState.CODE_ALLOCATION)
    session.advance(SessionState.CODE_ALLOCATED)

    with pytest.raises(InvalidTransition):
        session.advance(SessionState.CONFIRMATION)


def test_terminal_state_cannot_be_left() -> None:
    session = Session(role=Role.SEND)
    session.advance(SessionState.FAILED)

    with pytest.raises(InvalidTransition):
        session.advance(SessionState.COMPLETED)


def test_skipping_states_is_rejected() -> None:
    session = Session(role=Role.SEND)

    with pytest.raises(InvalidTransition):
        session.advance(SessionState.TRANSFERRING)


def test_session_result_success_flag() -> None:
    assert SessionResult(state=SessionState.COMPLETED, role=Role.SEND).succeeded is True
    assert SessionResult(state=SessionState.CANCELLED, role=Role.SEND).succeeded is False
