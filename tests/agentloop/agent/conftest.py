import pytest

from tests.fixtures.mock_agent import EchoAgent


@pytest.fixture
def echo_agent_class():
    return EchoAgent
