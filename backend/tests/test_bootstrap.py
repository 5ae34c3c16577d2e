import logging

import pytest
from sqlalchemy.exc import OperationalError

from app.db import bootstrap


def _raise_error(message: str):
    raise OperationalError("SELECT 1", {}, Exception(message))


def test_runtime_schema_bootstrap_raises_on_database_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "find_missing_schema", lambda: _raise_error("connection refused"))

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_runtime_schema_bootstrap_warns_on_missing_tables(monkeypatch, caplog):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "find_missing_schema", lambda: (["schedule_leases"], ["schedule_runs.unassigned"]))

    with caplog.at_level(logging.WARNING, logger="app.db.bootstrap"):
        bootstrap.ensure_runtime_schema_compatibility()

    assert "missing_tables=schedule_leases" in caplog.text
    assert "schedule_runs.unassigned" in caplog.text
