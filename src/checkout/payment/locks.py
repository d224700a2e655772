"""In-process serialisation of work that talks to the gateway about money.

Notifications for the same tran_id (gateway retries, the IPN racing the
browser callback) are settled one at a time, and refunds of one order are
requested one at a time. Locks are striped: a fixed pool shared by hash, so
memory stays bounded however many transactions pass through. Cross-process
safety comes from the repository's version check.
"""

import threading
import zlib
from contextlib import contextmanager

_STRIPES = 64
_locks = [threading.Lock() for _ in range(_STRIPES)]


def lock_for(key: str) -> threading.Lock:
    return _locks[zlib.crc32(key.encode("utf-8")) % _STRIPES]


@contextmanager
def settlement_lock(tran_id: str):
    with lock_for(tran_id or ""):
        yield


@contextmanager
def refund_lock(order_id: str):
    with lock_for(f"refund:{order_id}"):
        yield
