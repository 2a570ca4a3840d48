import pytest

import database
from library import Library


@pytest.fixture
def db_file(tmp_path, request, monkeypatch):
    # Unique database file per test
    path = str(tmp_path / f"test_{request.node.name}.db")
    monkeypatch.setattr(database, "DATABASE_FILE", path)
    return path


@pytest.fixture
def lib(db_file):
    return Library(db_file=db_file)


@pytest.fixture
def memory_lib():
    return Library.in_memory()


@pytest.fixture(autouse=True)
def plain_cli_output(monkeypatch):
    # The CLI stores its output mode in the environment; keep tests isolated
    monkeypatch.setenv("LIB_CLI_OUTPUT", "plain")
