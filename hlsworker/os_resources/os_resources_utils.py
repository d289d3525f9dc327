import logging

import psutil

log = logging.getLogger(__name__)

PRIORITY_LEVELS = ("idle", "below_normal", "normal", "above_normal", "high", "real_time")
DEFAULT_PRIORITY = "normal"

_POSIX_NICE_VALUES = dict(zip(PRIORITY_LEVELS, (19, 10, 0, -5, -15, -20)))


def _windows_priority_classes() -> dict:
    return dict(zip(PRIORITY_LEVELS, (
        psutil.IDLE_PRIORITY_CLASS,
        psutil.BELOW_NORMAL_PRIORITY_CLASS,
        psutil.NORMAL_PRIORITY_CLASS,
        psutil.ABOVE_NORMAL_PRIORITY_CLASS,
        psutil.HIGH_PRIORITY_CLASS,
        psutil.REALTIME_PRIORITY_CLASS,
    )))


def _priority_value(priority_str: str):
    levels = _windows_priority_classes() if psutil.WINDOWS else _POSIX_NICE_VALUES
    p_str = priority_str.lower()
    if p_str not in levels:
        log.warning(f"Unknown priority level: {priority_str}. Falling back to \"{DEFAULT_PRIORITY}\"")
        p_str = DEFAULT_PRIORITY
    return p_str, levels[p_str]


def set_process_priority(process, priority_str: str) -> None:
    """
    Apply a named scheduling priority to a running encoder process.

    Failures are logged and never abort the caller: the encoder keeps running
    with whatever priority the OS gave it.
    """
    pid = getattr(process, 'pid', None)
    p_str, value = _priority_value(priority_str)

    try:
        target_process = process if isinstance(process, psutil.Process) else psutil.Process(pid)

        if target_process.nice() == value:
            return
        target_process.nice(value)
        log.debug(f"Encoder PID {pid} runs with '{p_str}' priority")

    except psutil.AccessDenied:
        log.warning(f"Insufficient permissions for '{p_str}' priority on PID {pid}. Keeping current priority.")
    except psutil.NoSuchProcess:
        log.warning(f"Failed to set priority: Process {pid} already terminated")
    except psutil.Error as e:
        log.error(f"Failed to set priority for PID {pid}: {e}")
