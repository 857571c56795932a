from governance_backend.app.reliability.errors import ApiError, not_authenticated
from governance_backend.app.reliability.circuit import OPEN, CircuitBreaker, CircuitPolicy

__all__ = [
    "ApiError",
    "not_authenticated",
    "OPEN",
    "CircuitBreaker",
    "CircuitPolicy",
]
