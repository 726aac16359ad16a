from __future__ import annotations

import logging
from typing import Iterator

import pytest


@pytest.fixture(autouse=True)
def reset_namesearch_logger() -> Iterator[None]:
    """Keep records flowing to caplog even if a test configured JSON logging."""
    yield
    root = logging.getLogger("namesearch")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
