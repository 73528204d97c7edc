from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional


@dataclass
class SideEffectOutcome:
    """What happened to a write whose failure must not change the response."""
    name: str
    succeeded: bool
    error: Optional[str] = None


async def best_effort(name: str, action: Callable[[], Awaitable[Any]]) -> SideEffectOutcome:
    try:
        await action()
    except Exception as e:
        logging.error(f"Best-effort step '{name}' failed: {e}", exc_info=True)
        return SideEffectOutcome(name=name, succeeded=False, error=str(e))
    return SideEffectOutcome(name=name, succeeded=True)
