"""Log context propagated through ContextVars (safe across asyncio tasks)."""

from contextvars import ContextVar
from typing import Dict, Optional

_release_id: ContextVar[Optional[str]] = ContextVar("release_id", default=None)
_asset_key: ContextVar[Optional[str]] = ContextVar("asset_key", default=None)
_session_id: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
_run_id: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

_VARS = {
    "release_id": _release_id,
    "asset_key": _asset_key,
    "session_id": _session_id,
    "run_id": _run_id,
}


def set_log_context(
    release_id: Optional[object] = None,
    asset_key: Optional[str] = None,
    session_id: Optional[str] = None,
    run_id: Optional[str] = None,
) -> None:
    """
    Set context values included in every subsequent log record.

    Only the arguments that are not None are updated.
    """
    values = {
        "release_id": release_id,
        "asset_key": asset_key,
        "session_id": session_id,
        "run_id": run_id,
    }
    for name, value in values.items():
        if value is not None:
            _VARS[name].set(str(value))


def get_log_context() -> Dict[str, Optional[str]]:
    """Return the current context values (None when unset)."""
    return {name: var.get() for name, var in _VARS.items()}


def clear_log_context(keep_run_id: bool = False) -> None:
    """Reset context values; the run id survives when keep_run_id is set."""
    for name, var in _VARS.items():
        if keep_run_id and name == "run_id":
            continue
        var.set(None)
