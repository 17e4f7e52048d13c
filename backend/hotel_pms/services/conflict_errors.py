"""Exceptions raised by the conflict engine."""

from typing import Optional


class ConflictEngineError(Exception):
    """Base exception for conflict engine errors"""
    pass


class DetectionFailed(ConflictEngineError):
    """A detector could not read its data source"""

    def __init__(self, message: str, detector: Optional[str] = None, result=None):
        super().__init__(message)
        self.detector = detector
        # Set by the orchestrator when the whole run failed
        self.result = result


class PersistenceFailed(ConflictEngineError):
    """Writing a conflict to the store failed"""

    def __init__(self, message: str, conflict_id: Optional[str] = None):
        super().__init__(message)
        self.conflict_id = conflict_id


class ConflictNotFound(ConflictEngineError):
    """Resolve/ignore target does not exist"""

    def __init__(self, conflict_id: str):
        super().__init__(f"Conflict {conflict_id} not found")
        self.conflict_id = conflict_id


class InvalidConflictTransition(ConflictEngineError):
    """Status change out of a terminal state"""

    def __init__(self, conflict_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Conflict {conflict_id} is already {current_status}; cannot move to {target_status}"
        )
        self.conflict_id = conflict_id
        self.current_status = current_status
        self.target_status = target_status


class UnsupportedAutoResolution(ConflictEngineError):
    """Suggested action has no automated handler"""

    def __init__(self, action: Optional[str]):
        super().__init__(f"Auto-resolution not supported for action: {action}")
        self.action = action


class AutoResolutionFailed(ConflictEngineError):
    """Automated handler exists but could not complete"""
    pass
