"""
Administrative pause switch for the migration campaign.
"""

import logging
from typing import Any, Callable, Dict, Optional

from tokenmigration.core.exceptions import MigrationPaused, Unauthorized
from tokenmigration.core.protocols import AccessGate

logger = logging.getLogger("tokenmigration.migration.pause")


class PauseSwitch:
    """
    Holds the pause state consulted by every migration-mutating call.

    Only admins recognised by the injected gate may flip it. Pausing an already
    paused campaign (or unpausing a running one) is a logged no-op.
    """

    def __init__(self, access_gate: AccessGate, time_provider: Callable[[], int]):
        self.access_gate = access_gate
        self._time_provider = time_provider
        self._state: Dict[str, Any] = self._default_state()

    @staticmethod
    def _default_state() -> Dict[str, Any]:
        return {
            "is_paused": False,
            "paused_by": None,
            "paused_timestamp": None,
            "reason": None,
        }

    def _check_admin(self, caller: str) -> None:
        if not self.access_gate.is_admin(caller):
            raise Unauthorized(f"Caller {caller} is not authorized to pause the campaign.", caller=caller)

    def pause(self, caller: str, reason: str = "Manual pause") -> None:
        self._check_admin(caller)
        if self._state["is_paused"]:
            logger.info("Pause requested but campaign already paused.")
            return
        self._state = {
            "is_paused": True,
            "paused_by": caller,
            "paused_timestamp": int(self._time_provider()),
            "reason": reason,
        }
        logger.warning(
            "Migration paused by %s. Reason: %s",
            caller,
            reason,
            extra={"event": "campaign.paused", "caller": caller},
        )

    def unpause(self, caller: str, reason: str = "Manual unpause") -> None:
        self._check_admin(caller)
        if not self._state["is_paused"]:
            logger.info("Unpause requested but campaign not paused.")
            return
        self._state = self._default_state()
        logger.info(
            "Migration unpaused by %s. Reason: %s",
            caller,
            reason,
            extra={"event": "campaign.unpaused", "caller": caller},
        )

    def is_paused(self) -> bool:
        return self._state["is_paused"]

    def ensure_running(self) -> None:
        if self._state["is_paused"]:
            raise MigrationPaused(
                "Migration is paused.",
                details={"paused_by": self._state["paused_by"], "reason": self._state["reason"]},
            )

    def get_status(self) -> Dict[str, Any]:
        return dict(self._state)

    def snapshot(self) -> Optional[Dict[str, Any]]:
        return dict(self._state)

    def restore(self, state: Dict[str, Any]) -> None:
        self._state = dict(state)
