"""
Error taxonomy for the bridge.

Every failure carries a `kind` string and a `retryable` hint so callers
(the API layer, scripts) can decide whether to retry, rebuild or give up.
Nothing in this package retries on its own.
"""

from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    kind = "bridge_error"
    retryable = False

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.details = details

    def to_dict(self) -> dict:
        out = {"kind": self.kind, "message": self.message, "retryable": self.retryable}
        if self.details:
            out["details"] = dict(self.details)
        return out


class ChainNotReady(BridgeError):
    kind = "chain_not_ready"
    retryable = True

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message or "Empty chain id. Please wait for the consensus engine to finish starting up."
        )


class SignerNotFound(BridgeError):
    kind = "signer_not_found"


class AddressRequired(BridgeError):
    kind = "address_required"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "address is required to sign tx")


class ValidationError(BridgeError, ValueError):
    kind = "validation_error"


class SigningError(BridgeError):
    kind = "signing_error"


class TransportError(BridgeError):
    kind = "transport_error"
    retryable = True

    def __init__(self, message: str = "", *, height: Optional[int] = None, **details: Any) -> None:
        super().__init__(message, **details)
        # Height echoed from the request when the engine never answered.
        self.height = height


class DecodeError(BridgeError, ValueError):
    kind = "decode_error"


class ExecutionRejected(BridgeError):
    kind = "execution_rejected"

    def __init__(self, message: str = "", *, code: int = 0, log: str = "", height: int = 0) -> None:
        super().__init__(message or f"tx rejected (code={code}): {log}", code=code, log=log, height=height)
        self.code = code
        self.log = log
        self.height = height


class PersistenceError(BridgeError):
    kind = "persistence_error"
    retryable = True


class DuplicateVote(PersistenceError):
    kind = "duplicate_vote"
    retryable = False


class NotFound(BridgeError):
    kind = "not_found"


class Conflict(BridgeError):
    kind = "conflict"
