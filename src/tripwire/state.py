"""Process-wide state computed once at configure time.

Holds the SDK identity, the installed-distributions snapshot and the static
OS/runtime contexts. The state is frozen after initialization, so readers
never need a lock.
"""

import logging
import platform
from dataclasses import dataclass, field
from importlib import metadata
from typing import Any

logger = logging.getLogger(__name__)

SDK_NAME = "tripwire"


@dataclass(frozen=True)
class ProcessState:
    sdk: dict[str, str]
    modules: dict[str, str] = field(default_factory=dict)
    contexts: dict[str, Any] = field(default_factory=dict)


_state: ProcessState | None = None


def _installed_distributions() -> dict[str, str]:
    modules = {}
    for dist in metadata.distributions():
        name = dist.metadata["Name"]
        if name:
            modules[name] = dist.version
    return modules


def _static_contexts() -> dict[str, Any]:
    return {
        "os": {"name": platform.system().lower(), "version": platform.release()},
        "runtime": {
            "name": platform.python_implementation(),
            "version": platform.python_version(),
        },
    }


def init_process_state(report_deps: bool = True) -> ProcessState:
    """Compute and store the process state.

    Args:
        report_deps: Whether to snapshot installed distributions

    Returns:
        The new ProcessState
    """
    global _state

    from tripwire import __version__

    modules = _installed_distributions() if report_deps else {}
    _state = ProcessState(
        sdk={"name": SDK_NAME, "version": __version__},
        modules=modules,
        contexts=_static_contexts(),
    )
    logger.debug(f"Process state initialized ({len(modules)} distributions)")
    return _state


def get_process_state() -> ProcessState:
    """Return the process state, initializing it with defaults if needed."""
    if _state is None:
        return init_process_state()
    return _state
