"""Shared fixtures for unit tests."""

import io
from unittest.mock import Mock

import pytest

from device_lab_action.annotations import PipelineAnnotator
from device_lab_action.client import DeviceLabClient
from device_lab_action.config import LabAPIConfig
from device_lab_action.session import RunSession
from device_lab_action.testing.clock import RecordingSleep


@pytest.fixture
def config() -> LabAPIConfig:
    """Create API configuration pointing at a test host."""
    return LabAPIConfig(host="lab.test", pkg_name="com.example.app")


@pytest.fixture
def client_mock(config: LabAPIConfig) -> Mock:
    """Create mock device lab client."""
    client = Mock(spec=DeviceLabClient)
    client.config = config
    return client


@pytest.fixture
def sleep() -> RecordingSleep:
    """Create a sleep that records delays instead of waiting."""
    return RecordingSleep()


@pytest.fixture
def annotations() -> io.StringIO:
    """Capture pipeline logging commands."""
    return io.StringIO()


@pytest.fixture
def session(annotations: io.StringIO) -> RunSession:
    """Create a run session writing annotations to a buffer."""
    return RunSession(annotator=PipelineAnnotator(stream=annotations))
