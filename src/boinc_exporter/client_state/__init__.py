"""Reading and modelling the BOINC client state file."""

from .models import ActiveTask, ClientState, Result
from .reader import DEFAULT_STATE_FILE, StateSnapshotReader, parse_client_state

__all__ = [
    "ActiveTask",
    "ClientState",
    "DEFAULT_STATE_FILE",
    "Result",
    "StateSnapshotReader",
    "parse_client_state",
]
