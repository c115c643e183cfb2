from __future__ import annotations

import logging
from typing import Dict, Type

from fastapi import HTTPException, Request

from ..backend import Backend
from ..errors import (
    AddressRequired,
    BridgeError,
    ChainNotReady,
    Conflict,
    DecodeError,
    DuplicateVote,
    ExecutionRejected,
    NotFound,
    PersistenceError,
    SignerNotFound,
    SigningError,
    TransportError,
    ValidationError,
)

log = logging.getLogger(__name__)

# most specific first
_STATUS: Dict[Type[BridgeError], int] = {
    DuplicateVote: 409,
    Conflict: 409,
    NotFound: 404,
    AddressRequired: 400,
    SignerNotFound: 400,
    ValidationError: 400,
    ExecutionRejected: 422,
    SigningError: 500,
    TransportError: 502,
    DecodeError: 502,
    ChainNotReady: 503,
    PersistenceError: 500,
}


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


def http_error(e: BridgeError) -> HTTPException:
    status = 500
    for kind, code in _STATUS.items():
        if isinstance(e, kind):
            status = code
            break
    if status >= 500:
        log.warning("[api] %s: %s", e.kind, e.message)
    return HTTPException(status_code=status, detail=e.to_dict())
