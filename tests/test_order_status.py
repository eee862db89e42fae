"""Transition policy tables and properties."""

import itertools

import pytest

from pos_api.app.domain import (
    CHANNEL_PATHS,
    FORWARD_EDGES,
    OVERRIDE_EDGES,
    TERMINAL_STATUSES,
    Channel,
    OrderStatus,
    Reason,
    UnknownChannelError,
    ValidationError,
    decide_transition,
    is_terminal,
    valid_next_statuses,
)

S = OrderStatus
ALL_PAIRS = list(itertools.product(Channel, OrderStatus))


@pytest.mark.parametrize(
    "channel,path",
    [
        (Channel.DINE, [S.DRAFT, S.PREPARING, S.READY, S.FINISHED]),
        (Channel.TAKEAWAY, [S.DRAFT, S.PREPARING, S.READY, S.PICKED_UP, S.FINISHED]),
        (
            Channel.DELIVERY,
            [S.DRAFT, S.PREPARING, S.READY, S.OUT_FOR_DELIVERY, S.DELIVERED, S.FINISHED],
        ),
    ],
)
def test_forward_walk_reaches_finished(channel, path):
    status = S.DRAFT
    walked = [status]
    while not is_terminal(status):
        (nxt,) = valid_next_statuses(channel, status, False)
        decision = decide_transition(channel, status, nxt, False)
        assert decision.allowed and decision.reason is Reason.FORWARD
        status = nxt
        walked.append(status)
    assert walked == path


@pytest.mark.parametrize("channel", list(Channel))
def test_forward_graph_is_acyclic_single_path(channel):
    edges = FORWARD_EDGES[channel]
    seen = {S.DRAFT}
    status = S.DRAFT
    while status in edges:
        status = edges[status]
        assert status not in seen
        seen.add(status)
    assert status is S.FINISHED
    # every status on the path has exactly one forward successor except FINISHED
    assert set(edges) == set(CHANNEL_PATHS[channel][:-1])


@pytest.mark.parametrize("channel,status", ALL_PAIRS)
def test_unprivileged_cancel_is_always_unauthorized(channel, status):
    decision = decide_transition(channel, status, S.CANCELLED, False)
    assert not decision.allowed
    assert decision.reason is Reason.UNAUTHORIZED


@pytest.mark.parametrize("channel", list(Channel))
@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
@pytest.mark.parametrize("privileged", [True, False])
def test_terminal_statuses_admit_nothing(channel, terminal, privileged):
    assert valid_next_statuses(channel, terminal, privileged) == ()
    for requested in OrderStatus:
        decision = decide_transition(channel, terminal, requested, privileged)
        assert not decision.allowed
        if requested is S.CANCELLED and not privileged:
            assert decision.reason is Reason.UNAUTHORIZED
        else:
            assert decision.reason is Reason.TERMINAL


@pytest.mark.parametrize("channel", list(Channel))
def test_no_override_out_of_finished(channel):
    previous = CHANNEL_PATHS[channel][-2]
    decision = decide_transition(channel, S.FINISHED, previous, True)
    assert not decision.allowed
    assert decision.reason is Reason.TERMINAL


@pytest.mark.parametrize(
    "channel,current,back",
    [
        (channel, current, back)
        for channel, edges in OVERRIDE_EDGES.items()
        for current, back in edges.items()
    ],
)
def test_override_then_forward_round_trip(channel, current, back):
    override = decide_transition(channel, current, back, True)
    assert override.allowed and override.is_override
    assert override.reason is Reason.OVERRIDE
    forward = decide_transition(channel, back, current, True)
    assert forward.allowed and forward.reason is Reason.FORWARD
    assert not forward.is_override


@pytest.mark.parametrize("channel", list(Channel))
def test_unprivileged_cannot_go_back(channel):
    for current, back in OVERRIDE_EDGES[channel].items():
        decision = decide_transition(channel, current, back, False)
        assert not decision.allowed
        assert decision.reason is Reason.INVALID_TRANSITION


@pytest.mark.parametrize("channel,status", ALL_PAIRS)
def test_privileged_cancel_from_non_terminal(channel, status):
    decision = decide_transition(channel, status, S.CANCELLED, True)
    if status in TERMINAL_STATUSES:
        assert decision.reason is Reason.TERMINAL
    else:
        assert decision.allowed
        assert decision.reason is Reason.CANCEL


def test_valid_next_order_forward_cancel_override():
    assert valid_next_statuses(Channel.DELIVERY, S.READY, True) == (
        S.OUT_FOR_DELIVERY,
        S.CANCELLED,
        S.PREPARING,
    )
    assert valid_next_statuses(Channel.DINE, S.DRAFT, True) == (S.PREPARING, S.CANCELLED)
    assert valid_next_statuses(Channel.DINE, S.READY, False) == (S.FINISHED,)


def test_status_outside_channel_path_is_invalid():
    decision = decide_transition(Channel.DINE, S.READY, S.OUT_FOR_DELIVERY, True)
    assert not decision.allowed
    assert decision.reason is Reason.INVALID_TRANSITION
    assert decision.allowed_next == (S.FINISHED, S.CANCELLED, S.PREPARING)
    assert "Valid next statuses" in decision.message


def test_skip_ahead_lists_only_forward_for_cashier():
    decision = decide_transition(Channel.DINE, S.DRAFT, S.READY, False)
    assert not decision.allowed
    assert decision.reason is Reason.INVALID_TRANSITION
    assert decision.allowed_next == (S.PREPARING,)


def test_accepts_plain_strings():
    decision = decide_transition("TAKEAWAY", "READY", "PICKED_UP", False)
    assert decision.allowed


def test_unknown_channel_raises():
    with pytest.raises(UnknownChannelError) as excinfo:
        decide_transition("DRIVE_THRU", S.DRAFT, S.PREPARING, False)
    assert isinstance(excinfo.value, ValidationError)
    assert excinfo.value.code == "UNKNOWN_CHANNEL"
    with pytest.raises(UnknownChannelError):
        valid_next_statuses("DRIVE_THRU", S.DRAFT, True)


@pytest.mark.parametrize("channel,current", ALL_PAIRS)
@pytest.mark.parametrize("privileged", [True, False])
def test_decision_is_deterministic_and_consistent(channel, current, privileged):
    allowed = valid_next_statuses(channel, current, privileged)
    for requested in OrderStatus:
        first = decide_transition(channel, current, requested, privileged)
        assert first == decide_transition(channel, current, requested, privileged)
        assert first.allowed == (requested in allowed)
        assert first.allowed_next == allowed
