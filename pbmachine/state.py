"""Map provider machine status strings onto canonical operational states."""

from __future__ import annotations

import enum


class CanonicalState(str, enum.Enum):
    UNKNOWN = 'Unknown'
    RUNNING = 'Running'
    PAUSED = 'Paused'
    STOPPED = 'Stopped'
    ERROR = 'Error'

    def __str__(self) -> str:
        return self.value


PROVIDER_STATE_MAP: dict[str, CanonicalState] = {
    'NOSTATE': CanonicalState.UNKNOWN,
    'AVAILABLE': CanonicalState.RUNNING,
    'PAUSED': CanonicalState.PAUSED,
    'BLOCKED': CanonicalState.STOPPED,
    'SHUTDOWN': CanonicalState.STOPPED,
    'SHUTOFF': CanonicalState.STOPPED,
    'CRASHED': CanonicalState.ERROR,
    'INACTIVE': CanonicalState.STOPPED,
}


def map_state(provider_status: str) -> CanonicalState:
    return PROVIDER_STATE_MAP.get(provider_status, CanonicalState.UNKNOWN)
