from collections import defaultdict
import threading
from typing import Dict, Set, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .records import remove_participant


class Presence:
    """Disconnect-triggered cleanup of participant records.

    A client registers ``(session_id, participant_id)`` against its
    connection; when the connection drops every registration fires once
    and is forgotten. Removal is idempotent, so a participant that already
    left explicitly is simply skipped.
    """

    def __init__(self):
        self._registrations: Dict[str, Set[Tuple[str, str]]] = defaultdict(set)
        self._lock = threading.Lock()

    def register(self, connection_id: str, session_id: str, participant_id: str) -> None:
        with self._lock:
            self._registrations[connection_id].add((session_id, participant_id))

    def cancel(self, connection_id: str, session_id: str, participant_id: str) -> None:
        with self._lock:
            regs = self._registrations.get(connection_id)
            if not regs:
                return
            regs.discard((session_id, participant_id))
            if not regs:
                self._registrations.pop(connection_id, None)

    def registrations(self, connection_id: str) -> Set[Tuple[str, str]]:
        with self._lock:
            return set(self._registrations.get(connection_id, set()))

    def disconnect(self, connection_id: str) -> int:
        """Fire and forget all registrations of a dropped connection.

        Must run inside an application context.
        """
        with self._lock:
            regs = self._registrations.pop(connection_id, set())
        removed = 0
        for session_id, participant_id in sorted(regs):
            try:
                if remove_participant(session_id, participant_id):
                    removed += 1
            except SQLAlchemyError:
                current_app.logger.exception(
                    f"[presence-error] connection={connection_id} session={session_id} participant={participant_id}"
                )
                continue
            current_app.logger.info(
                f"[presence-fire] connection={connection_id} session={session_id} participant={participant_id}"
            )
        return removed
