"""
Verbosity-gated logging on top of Loguru.

The CLI connects its ProgramState once; every LOG() call made afterwards,
including those deep inside the renderer and the chemistry batcher, is
filtered against that state's verbosity. Library callers that never connect
a state get silence, unless CHEMDOWN_DEBUG_MODE is set, in which case every
message is emitted.

Usage:
    from chemdown.lib.log import LOG, state_connectToLogger

    state_connectToLogger(state)
    LOG("Rendering source...", level=1)
    LOG("Placeholder miss: {{TABLE7}}", level=2)

Levels map onto Loguru severities so that sinks can filter them:

    1 → INFO       normal progress
    2 → DEBUG      extraction and batching details
    3 → TRACE      per-placeholder and per-request traces
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

from ..config import appsettings

_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

LEVEL_NAMES = {1: "INFO", 2: "DEBUG", 3: "TRACE"}

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <5}</level> │ "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> @ "
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()
logger.add(sys.stderr, format=logger_format, level="TRACE")


def state_connectToLogger(state: Any) -> None:
    """
    Make ``state.verbosity`` the threshold of LOG() in the current context.

    Any object with a ``verbosity`` attribute works; the CLI passes its
    ProgramState.
    """
    _program_state.set(state)


def verbosity_get() -> int:
    """Current verbosity threshold, 0 when nothing should be emitted"""
    state = _program_state.get()
    if state is not None and hasattr(state, 'verbosity'):
        return state.verbosity
    return 3 if appsettings.debug_mode else 0


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log message if the current verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity required (1=normal, 2=verbose, 3=trace)
        **kwargs: Additional loguru metadata
    """
    if verbosity_get() < level:
        return
    severity = LEVEL_NAMES.get(level, "TRACE")
    logger.opt(depth=1).log(severity, message, **kwargs)
