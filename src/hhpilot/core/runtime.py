from __future__ import annotations

from hhpilot.core.supervisor import Supervisor

_SUPERVISOR: Supervisor | None = None


def get_supervisor() -> Supervisor:
    global _SUPERVISOR
    if _SUPERVISOR is None:
        _SUPERVISOR = Supervisor()
    return _SUPERVISOR
