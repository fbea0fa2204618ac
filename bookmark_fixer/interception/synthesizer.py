"""Fabricated responses and completion event delivery.

A synthesized response must look like any other completed call to the
code that receives it: status 200, a JSON body, a JSON content type and
completion events delivered after the caller has been handed the
response, never during the call that produced it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from bookmark_fixer.models.interception import CallState, InterceptedCall, ReadyState

logger = logging.getLogger(__name__)

#: Events fired on completion, in order.
COMPLETION_EVENTS = ("readystatechange", "load")


def synthesize(call: InterceptedCall, request: httpx.Request, payload: Any) -> httpx.Response:
    """Answer *request* with ``payload`` as a successful JSON response.

    The body is serialised before any call state is touched, so a
    payload that cannot be encoded raises here and leaves *call*
    unchanged.  Completion events are scheduled on the running loop and
    fire once, on a later tick.
    """
    body = json.dumps(payload).encode("utf-8")
    headers = {"content-type": "application/json", "content-length": str(len(body))}

    call.ready_state = ReadyState.DONE
    schedule_completion(call, buffered(200, headers, body, request))
    return replay(200, headers, body, request)


def replay(
    status_code: int,
    headers: Any,
    body: bytes,
    request: httpx.Request,
    extensions: Optional[dict[str, Any]] = None,
) -> httpx.Response:
    """A fresh, unread response over *body*.

    The client receiving it reads and closes the stream itself, exactly
    as it does for a response coming off the network, so timing and
    close bookkeeping such as ``Response.elapsed`` stay intact.
    """
    return httpx.Response(
        status_code,
        headers=headers,
        stream=httpx.ByteStream(body),
        extensions=extensions,
        request=request,
    )


def buffered(status_code: int, headers: Any, body: bytes, request: httpx.Request) -> httpx.Response:
    """Like :func:`replay`, but already read; handed to completion listeners."""
    response = replay(status_code, headers, body, request)
    response.read()
    return response


def schedule_completion(call: InterceptedCall, response: httpx.Response) -> None:
    """Queue :func:`dispatch_completion` for the next loop iteration."""
    asyncio.get_running_loop().call_soon(dispatch_completion, call, response)


def dispatch_completion(call: InterceptedCall, response: httpx.Response) -> None:
    """Fire ``readystatechange`` then ``load`` for *call*, at most once."""
    if call.completed_events:
        return
    call.completed_events = True
    call.ready_state = ReadyState.DONE
    call.state = CallState.COMPLETED

    for event in COMPLETION_EVENTS:
        for listener in list(call.listeners.get(event, ())):
            try:
                listener(response)
            except Exception:
                logger.exception(
                    "%s listener failed for %s %s", event, call.method, call.target_url
                )
