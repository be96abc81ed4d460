import os

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep PTERODACTYL_* variables from the host out of every test."""
    for key in list(os.environ):
        if key.startswith("PTERODACTYL_"):
            monkeypatch.delenv(key)
    yield
