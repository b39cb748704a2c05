"""Root pytest configuration."""

import pytest

from charlib.api import arq_pool


@pytest.fixture(autouse=True)
def reset_job_queue():
    """The queue pool is module state; don't let one test's pool reach another."""
    yield
    arq_pool._pool = None
