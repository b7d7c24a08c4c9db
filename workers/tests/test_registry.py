"""Tests for job handler registration."""

import pytest

import bulktrack_workers.handlers  # noqa: F401
from bulktrack_workers.registry import _registry, get_handler, register, registered_types


@pytest.fixture(autouse=True)
def _clean_registry():
    """Remove test-registered handlers after each test."""
    snapshot = dict(_registry)
    yield
    _registry.clear()
    _registry.update(snapshot)


def test_rollup_handlers_registered():
    assert {"set.mutated", "rollup.backfill"} <= set(registered_types())
    assert get_handler("set.mutated").__name__ == "handle_set_mutated"
    assert get_handler("rollup.backfill").__name__ == "handle_rollup_backfill"


def test_register_and_lookup():
    @register("test.job")
    async def _handler(conn, payload):
        pass

    assert get_handler("test.job") is _handler


def test_duplicate_registration_rejected():
    @register("test.dup")
    async def _first(conn, payload):
        pass

    with pytest.raises(ValueError, match="Duplicate handler"):
        @register("test.dup")
        async def _second(conn, payload):
            pass


def test_unknown_job_type():
    assert get_handler("does.not.exist") is None
