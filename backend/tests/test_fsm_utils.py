from aftersales.constants import roles as R
from aftersales.errors import ValidationError
from aftersales.services.requests import REQUEST_FSM
from aftersales.utils.fsm import TransitionValidator
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(ValidationError) as exc:
        fsm.assert_can_transition('A', 'C')
    assert 'A -> C' in exc.value.description


def test_transition_validator_rejects_dangling_targets():
    with pytest.raises(ValueError):
        TransitionValidator({'A': {'B'}})


def test_request_graph_edges():
    assert REQUEST_FSM.targets(R.STATUS_NEW) == {R.STATUS_ASSIGNED}
    assert REQUEST_FSM.targets(R.STATUS_IN_REPAIR) == {R.STATUS_WAITING_PARTS, R.STATUS_COMPLETED}
    assert REQUEST_FSM.can_transition(R.STATUS_WAITING_PARTS, R.STATUS_IN_REPAIR)
    assert REQUEST_FSM.targets(R.STATUS_COMPLETED) == {R.STATUS_CLOSED}
    assert REQUEST_FSM.is_terminal(R.STATUS_CLOSED)
    assert not REQUEST_FSM.is_terminal(R.STATUS_COMPLETED)
    assert set(REQUEST_FSM.states) == set(R.ALL_STATUSES)


@pytest.mark.parametrize('current,target', [
    (R.STATUS_NEW, R.STATUS_IN_REPAIR),
    (R.STATUS_ASSIGNED, R.STATUS_COMPLETED),
    (R.STATUS_UNDER_INSPECTION, R.STATUS_ASSIGNED),
    (R.STATUS_COMPLETED, R.STATUS_IN_REPAIR),
    (R.STATUS_CLOSED, R.STATUS_NEW),
])
def test_request_graph_rejects_skips_and_backtracking(current, target):
    assert not REQUEST_FSM.can_transition(current, target)
