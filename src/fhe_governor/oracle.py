"""Decryption oracle contract and a local gateway implementation.

A request carries the ciphertexts to reveal, an opaque context (the proposal
id) and the callback to invoke. The request id is returned synchronously; the
result arrives later through the callback, called with the oracle's own
address as the caller.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .coprocessor import Ciphertext, Coprocessor
from .errors import OracleError

log = logging.getLogger(__name__)

Callback = Callable[[str, List[int], str], Any]


class DecryptionOracle(Protocol):
    address: str

    def request_decryption(self, ciphertexts: Sequence[Ciphertext], context: Any, callback: Callback) -> str: ...

    def request_context(self, request_id: str) -> Optional[Any]: ...


@dataclass
class DecryptionRequest:
    request_id: str
    ciphertexts: List[Ciphertext]
    context: Any
    callback: Callback
    fulfilled: bool = False


class LocalDecryptionOracle:
    """In-process gateway that decrypts with the coprocessor's key

    Requests stay queued until a relayer calls ``fulfill`` or
    ``fulfill_pending``. Records are kept after fulfillment so that the
    context of a replayed request id can still be resolved.
    """

    def __init__(self, coprocessor: Coprocessor, address: str = "gateway"):
        self.coprocessor = coprocessor
        self.address = address
        self._requests: Dict[str, DecryptionRequest] = {}

    def request_decryption(self, ciphertexts: Sequence[Ciphertext], context: Any, callback: Callback) -> str:
        request_id = secrets.token_hex(16)
        self._requests[request_id] = DecryptionRequest(
            request_id=request_id,
            ciphertexts=list(ciphertexts),
            context=context,
            callback=callback,
        )
        log.info("decryption request %s queued (%d ciphertexts)", request_id, len(ciphertexts))
        return request_id

    def request_context(self, request_id: str) -> Optional[Any]:
        req = self._requests.get(request_id)
        return None if req is None else req.context

    def pending(self) -> List[str]:
        return [rid for rid, req in self._requests.items() if not req.fulfilled]

    def fulfill(self, request_id: str) -> List[int]:
        """Decrypt a queued request and deliver it through its callback

        Raises OracleError for unknown or already delivered requests and when
        a ciphertext cannot be decrypted; the request then stays outstanding.
        """

        req = self._requests.get(request_id)
        if req is None:
            raise OracleError(f"unknown request {request_id}")
        if req.fulfilled:
            raise OracleError(f"request {request_id} already fulfilled")

        values = [self.coprocessor.decrypt(ct) for ct in req.ciphertexts]
        req.callback(request_id, values, self.address)
        req.fulfilled = True
        log.info("decryption request %s fulfilled", request_id)
        return values

    def fulfill_pending(self) -> Tuple[List[str], List[str]]:
        """Fulfill every queued request; returns (fulfilled, failed)

        A request that fails stays queued and does not block the rest.
        """

        done, failed = [], []
        for request_id in self.pending():
            try:
                self.fulfill(request_id)
            except OracleError as e:
                log.error("decryption request %s failed: %s", request_id, e)
                failed.append(request_id)
                continue
            done.append(request_id)
        return done, failed
