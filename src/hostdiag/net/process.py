"""
Process name lookup for socket owners.
"""

import logging

import psutil

logger = logging.getLogger(__name__)

SYSTEM_IDLE_PROCESS = "System Idle Process"
SYSTEM = "System"
INVALID_PID = "Invalid PID"
PROCESS_EXITED = "Process Exited"
ACCESS_DENIED = "Access Denied"
LOOKUP_ERROR = "Lookup Error"

# Windows pseudo-processes that cannot be opened
_RESERVED_PIDS = {
    0: SYSTEM_IDLE_PROCESS,
    4: SYSTEM,
}


def resolve_process_name(pid: int) -> str:
    """Return a display name for the process owning a socket.

    The socket snapshot and this lookup are not atomic, so the process may
    be gone by now. Never raises; failures map to sentinel strings.
    """
    if pid in _RESERVED_PIDS:
        return _RESERVED_PIDS[pid]
    if pid < 0:
        return INVALID_PID

    try:
        process = psutil.Process(pid)
        if not process.is_running():
            return PROCESS_EXITED
        return process.name()
    except psutil.NoSuchProcess:
        return PROCESS_EXITED
    except psutil.AccessDenied:
        logger.warning(f"Access denied getting process name for PID {pid}")
        return ACCESS_DENIED
    except Exception as e:
        logger.error(f"Error getting process name for PID {pid}", exc_info=e)
        return LOOKUP_ERROR
