UNINITIALIZED = "uninitialized"
LOADING = "loading"
READY = "ready"
FAILED = "failed"

TERMINAL_STATUSES = {READY, FAILED}


def transition_session_status(current: str, event: str) -> str:
    if current in TERMINAL_STATUSES:
        return current

    if event == "load":
        if current == UNINITIALIZED:
            return LOADING
        return current

    if event == "loaded":
        if current == LOADING:
            return READY
        return current

    if event == "error":
        if current == LOADING:
            return FAILED
        return current

    return current
