"""Error taxonomy shared by the order desk and the discount editor.

None of these are fatal: callers catch them and turn them into a message
for the operator.
"""
from typing import Dict, Optional


class StoreDeskError(Exception):
    code = "storedesk_error"

    def to_dict(self) -> Dict:
        return {"ok": False, "error": self.code, "message": str(self)}


class ForbiddenTransition(StoreDeskError):
    """A status change that is not legal from the order's current status."""

    code = "forbidden_transition"

    def __init__(self, order_id: str, current: Optional[str], target: str, reason: Optional[str] = None):
        self.order_id = order_id
        self.current = current
        self.target = target
        if reason is None:
            reason = f"Cannot transition order {order_id} from {current} to {target}"
        super().__init__(reason)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update({"order_id": self.order_id, "current": self.current, "target": self.target})
        return data


class ValidationFailed(StoreDeskError):
    """Carries every detected violation at once, keyed by form field."""

    code = "validation_failed"

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class LookupNotFound(StoreDeskError):
    code = "not_found"

    def __init__(self, what: str, key: str):
        self.what = what
        self.key = key
        super().__init__(f"No {what} matches {key!r}")


class TransportFailure(StoreDeskError):
    code = "transport_failure"

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class MalformedEvent(StoreDeskError):
    code = "malformed_event"
