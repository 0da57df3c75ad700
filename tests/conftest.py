"""
conftest.py - pytest fixtures for ledgerdb tests.
"""

import os
import stat
import tempfile

import pytest

from ledgerdb import LedgerClient

from fakes import FakeEngine, FakeTransport


@pytest.fixture
def temp_dir():
    """Create a temporary directory for repositories and index files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(temp_dir, transport):
    """LedgerClient over a FakeTransport in a temp repository."""
    return LedgerClient(temp_dir, transport=transport)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def engine_client(temp_dir, engine):
    """LedgerClient wired to a stateful FakeEngine."""
    return LedgerClient(temp_dir, transport=FakeTransport(handler=engine.handle))


@pytest.fixture
def make_script(temp_dir):
    """Write an executable shell script standing in for the engine."""
    def _make(body, name="ledgerdb"):
        path = os.path.join(temp_dir, name)
        with open(path, "w") as f:
            f.write("#!/bin/sh\n" + body + "\n")
        os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path
    return _make
