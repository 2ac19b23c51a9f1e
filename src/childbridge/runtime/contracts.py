from __future__ import annotations

from enum import Enum, IntEnum


class ControllerState(str, Enum):
    """Lifecycle states of the child bridge controller."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class ControllerEvent(str, Enum):
    """Events that drive controller state transitions."""

    LOAD = "load"
    START = "start"
    SHUTDOWN = "shutdown"
    TEARDOWN_COMPLETE = "teardown_complete"


class ExitCode(IntEnum):
    """Process exit codes observed by the parent."""

    OK = 0
    ORPHANED = 1
    LOAD_FAILURE = 2


# POSIX convention for processes terminated by a signal.
SIGNAL_EXIT_BASE = 128


def signal_exit_code(signal_number: int) -> int:
    """Return the exit code used after a forced exit triggered by ``signal_number``."""
    return SIGNAL_EXIT_BASE + signal_number


def transition_controller_state(current: ControllerState, event: ControllerEvent) -> ControllerState:
    """Compute the next controller state for a given event.

    States only move forward:
    - uninitialized --load--> loaded --start--> running
    - uninitialized/loaded/running --shutdown--> shutting_down
    - shutting_down --teardown_complete--> terminated

    SHUTDOWN while already shutting down is a no-op. Any other transition,
    including anything out of ``terminated``, raises ValueError.
    """

    if current == ControllerState.TERMINATED:
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if event == ControllerEvent.SHUTDOWN:
        return ControllerState.SHUTTING_DOWN

    if current == ControllerState.UNINITIALIZED:
        if event == ControllerEvent.LOAD:
            return ControllerState.LOADED
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.LOADED:
        if event == ControllerEvent.START:
            return ControllerState.RUNNING
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.RUNNING:
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    if current == ControllerState.SHUTTING_DOWN:
        if event == ControllerEvent.TEARDOWN_COMPLETE:
            return ControllerState.TERMINATED
        raise ValueError(f"Invalid controller transition: {current} -> {event}")

    raise ValueError(f"Unknown controller state: {current}")


def can_transition(current: ControllerState, event: ControllerEvent) -> bool:
    """Return whether ``event`` is accepted in ``current`` without raising."""
    try:
        transition_controller_state(current, event)
    except ValueError:
        return False
    return True
