import pytest

from mandi_relay.models.state_machine import StateMachine, States


def test_full_cycle_path():
    sm = StateMachine()
    assert sm.state == States.COLLECTING
    for state in (States.GROUPING, States.DISPATCHING, States.BROADCASTING, States.DONE):
        sm.transition(state)
    assert sm.done


@pytest.mark.parametrize("state", [States.COLLECTING, States.GROUPING, States.DISPATCHING, States.BROADCASTING])
def test_every_state_can_finish_early_but_never_restart(state):
    sm = StateMachine(state)
    assert sm.can_transition(States.DONE)
    assert not sm.can_transition(States.COLLECTING)


def test_done_is_terminal():
    sm = StateMachine(States.DONE)
    with pytest.raises(ValueError):
        sm.transition(States.COLLECTING)


def test_steps_cannot_be_skipped():
    sm = StateMachine()
    with pytest.raises(ValueError):
        sm.transition(States.DISPATCHING)
    assert sm.state == States.COLLECTING
