"""Error taxonomy shared by the store, the analytics engine, and the API.

Learn: Every public operation either returns a well-formed result or raises
one of these. Each class knows its HTTP status so the API layer maps them
with a single exception handler instead of try/except in every route.

"No data" is deliberately absent: an empty sample set is a valid outcome
and is represented by ``None``, not by an exception.
"""


class RunlensError(Exception):
    """Base class for all categorized failures."""

    status_code = 500
    kind = "error"


class SessionNotFoundError(RunlensError):
    """A referenced session id does not exist."""

    status_code = 404
    kind = "not_found"

    def __init__(self, session_id: str, role: str = "session"):
        self.session_id = session_id
        super().__init__(f'{role.capitalize()} "{session_id}" not found')


class SessionAlreadyEndedError(RunlensError):
    """close_session was called on a session that already has an end timestamp."""

    status_code = 409
    kind = "already_ended"

    def __init__(self, session_id: str, ended_at):
        self.session_id = session_id
        self.ended_at = ended_at
        when = f" at {ended_at.isoformat()}" if ended_at is not None else ""
        super().__init__(f'Session "{session_id}" was already ended{when}')


class InvalidInputError(RunlensError):
    """Rejected before touching the store."""

    status_code = 422
    kind = "invalid_input"


class StoreError(RunlensError):
    """The event store could not complete a read, write, or transaction."""

    status_code = 503
    kind = "store_failure"
