import os

import pytest

os.environ.setdefault("DRASH_LOG_FILE", "0")


@pytest.fixture
def anyio_backend():
    return "asyncio"
