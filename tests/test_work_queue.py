from __future__ import annotations

import threading

import httpx
import pytest

from queued_http import RequestClient, RequestOperation, ThreadPoolWorkQueue


def _operation(url: str, send) -> RequestOperation:
    return RequestOperation(httpx.Request("GET", url), send)


def test_thread_pool_runs_operations_concurrently() -> None:
    barrier = threading.Barrier(2, timeout=5)

    def send(request: httpx.Request) -> httpx.Response:
        barrier.wait()
        return httpx.Response(200, request=request)

    queue = ThreadPoolWorkQueue(max_workers=2)
    first = _operation("https://example.com/1", send)
    second = _operation("https://example.com/2", send)
    queue.submit(first)
    queue.submit(second)

    assert queue.wait_until_idle(timeout=5)
    queue.shutdown()
    assert first.outcome.succeeded and second.outcome.succeeded


def test_queued_operations_can_be_cancelled_before_start() -> None:
    release = threading.Event()
    ran = []

    def send(request: httpx.Request) -> httpx.Response:
        ran.append(str(request.url))
        release.wait(timeout=5)
        return httpx.Response(200, request=request)

    queue = ThreadPoolWorkQueue(max_workers=1)
    blocker = _operation("https://example.com/blocker", send)
    waiting = _operation("https://example.com/waiting", send)
    queue.submit(blocker)
    queue.submit(waiting)

    assert queue.cancel_matching(lambda operation: operation.url.endswith("/waiting")) == 1
    release.set()
    queue.shutdown()

    assert waiting.outcome.cancelled
    assert ran == ["https://example.com/blocker"]
    assert len(queue) == 0


def test_rejects_invalid_worker_count() -> None:
    with pytest.raises(ValueError):
        ThreadPoolWorkQueue(max_workers=0)


def test_concurrent_header_mutation_never_tears_auth() -> None:
    client = RequestClient("https://api.example.com")
    stop = threading.Event()

    def mutate() -> None:
        while not stop.is_set():
            client.set_bearer_auth("a")
            client.clear_auth()
            client.set_token_auth("b")

    worker = threading.Thread(target=mutate)
    worker.start()
    try:
        for _ in range(500):
            value = client.build_request("GET", "/me").headers.get("Authorization")
            assert value in (None, "Bearer a", 'Token token="b"')
    finally:
        stop.set()
        worker.join()
        client.close()
