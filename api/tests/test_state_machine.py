from app.services.state_machine import FAILED, LOADING, READY, UNINITIALIZED, transition_session_status


def test_session_load_success_path():
    assert transition_session_status(UNINITIALIZED, "load") == LOADING
    assert transition_session_status(LOADING, "loaded") == READY


def test_session_load_failure_path():
    assert transition_session_status(LOADING, "error") == FAILED


def test_events_out_of_order_are_ignored():
    assert transition_session_status(UNINITIALIZED, "loaded") == UNINITIALIZED
    assert transition_session_status(UNINITIALIZED, "error") == UNINITIALIZED
    assert transition_session_status(LOADING, "load") == LOADING


def test_terminal_states_absorb_events():
    for event in ("load", "loaded", "error"):
        assert transition_session_status(READY, event) == READY
        assert transition_session_status(FAILED, event) == FAILED
