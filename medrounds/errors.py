from typing import Dict, List, Optional


class RoundsError(Exception):
    """Base class for errors raised by the rounding core."""


class ValidationError(RoundsError):
    """Rejected input, raised before anything is sent to the store."""


class NotFoundError(RoundsError):
    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class PersistenceError(RoundsError):
    """The underlying store failed to read or write."""


class PartialReorderFailure(RoundsError):
    """
    Some position writes of a reorder/resequence batch failed after others
    were applied. The round may now hold gaps or duplicates; running a
    resequence restores the dense ordering.
    """

    def __init__(self, round_id: int, failed_ids: List[int], errors: Optional[Dict[int, Exception]] = None):
        self.round_id = round_id
        self.failed_ids = failed_ids
        self.errors = errors or {}
        super().__init__(
            f"{len(failed_ids)} position write(s) failed for round {round_id}: {failed_ids}"
        )
