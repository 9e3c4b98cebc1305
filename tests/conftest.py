import socket
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import httpx
import pytest


class CountingTransport(httpx.MockTransport):
    """MockTransport that remembers how many requests it saw."""

    def __init__(self, handler):
        self.requests = []

        def _handler(request: httpx.Request):
            self.requests.append(request)  # list.append is atomic under the GIL
            return handler(request)

        super().__init__(_handler)


@pytest.fixture
def ok_transport():
    return CountingTransport(lambda request: httpx.Response(200, text="ok"))


@pytest.fixture
def refused_transport():
    def handler(request):
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
    return CountingTransport(handler)


@pytest.fixture
def closed_port_url():
    # Bind then release an ephemeral port so nothing is listening on it.
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/"
