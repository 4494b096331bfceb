"""Exception taxonomy for rejected actions and collaborator failures.

Every rejection carries a ``details`` mapping describing what was expected
and what was received so callers can report exactly which precondition failed.
None of these are raised after a room has been mutated.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TrumpcallError(Exception):
    """Base class for all trumpcall errors."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.message, **self.details}


class InvalidAction(TrumpcallError):
    """Wrong phase, wrong actor or out-of-turn action."""


class StaleTimer(InvalidAction):
    """A deferred transition fired after its precondition stopped holding."""


class IllegalPlay(TrumpcallError):
    """Card not in hand, or the play breaks the follow-suit rule."""


class InvalidBid(TrumpcallError):
    """Bid below the minimum, above the maximum, or bidding already closed."""


class RoomNotFound(TrumpcallError):
    def __init__(self, room_id: Optional[str] = None, *, code: Optional[str] = None) -> None:
        if code is not None:
            message = f"Room with code {code} not found"
        else:
            message = f"Room {room_id} not found"
        super().__init__(message, room_id=room_id, code=code)
        self.room_id = room_id
        self.code = code


class RoomFull(TrumpcallError):
    """All four seats are taken or the room already left the lobby."""


class PersistenceError(TrumpcallError):
    """The state store failed; the enclosing transition did not happen."""


class FanoutError(TrumpcallError):
    """One or more observers failed while a change was being published."""
