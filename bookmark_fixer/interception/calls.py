"""Identity-keyed side table of in-flight calls.

Each ``httpx.Request`` object passing through the interceptor owns at
most one :class:`InterceptedCall`.  Records are looked up by object
identity, never by URL or method, because two distinct calls may target
the same URL at once.  Entries are removed explicitly when the call
finishes; the weak keys only guarantee a record cannot outlive its
request if a caller forgets to close it.
"""

from __future__ import annotations

import weakref
from typing import Optional

import httpx

from bookmark_fixer.models.interception import InterceptedCall


class CallTable:
    def __init__(self) -> None:
        self._calls: weakref.WeakKeyDictionary[httpx.Request, InterceptedCall] = (
            weakref.WeakKeyDictionary()
        )

    def open(self, request: httpx.Request) -> InterceptedCall:
        """Create the record for *request*, replacing any stale one."""
        call = InterceptedCall(target_url=str(request.url), method=request.method)
        self._calls[request] = call
        return call

    def get(self, request: httpx.Request) -> Optional[InterceptedCall]:
        return self._calls.get(request)

    def close(self, request: httpx.Request) -> None:
        self._calls.pop(request, None)

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, request: object) -> bool:
        return request in self._calls
