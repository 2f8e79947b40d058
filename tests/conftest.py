"""Pytest fixtures for rain tests."""

from __future__ import annotations

import os

import pytest
from hypothesis import settings

from rain import Color
from tests.helpers import RecordingTerminal, ScriptedRng

settings.register_profile("ci", max_examples=200, deadline=None)
settings.register_profile("dev", max_examples=50, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
def terminal() -> RecordingTerminal:
    return RecordingTerminal()


@pytest.fixture
def always_start() -> ScriptedRng:
    return ScriptedRng(draws=[0.0])


@pytest.fixture
def never_start() -> ScriptedRng:
    return ScriptedRng(draws=[1.0])


@pytest.fixture
def green() -> Color:
    return Color(0, 255, 43)
