import pytest

from helpers import ScriptedConnector


@pytest.fixture
def connector():
    return ScriptedConnector()
