import pytest


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Scratch directory that is also the CWD, since includes resolve against it."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
