OPEN = "open"
CLOSED = "closed"

STATUSES = {OPEN, CLOSED}


def transition_status(current: str, requested: str | None) -> str:
    if current == CLOSED:
        return CLOSED

    if requested == CLOSED:
        return CLOSED

    if current in STATUSES:
        return current

    return OPEN


def accepts_responses(status: str) -> bool:
    return status == OPEN
