import logging

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def log():
    return logging.getLogger("segment-proxy.test")
