"""Shared fixtures for colony-agents tests.

Every test builds its world on ``SandboxWorld``: a single owned zone
``W1N1`` (controller level 3, far from downgrade) unless the test adds more.
"""

from __future__ import annotations

import pytest

from colony_agents.policy.scripted_agent.overseer.config import SchedulerConfig
from colony_agents.policy.scripted_agent.overseer.sandbox import SandboxWorld
from colony_agents.policy.scripted_agent.overseer.scheduler import Scheduler

HOME = "W1N1"


@pytest.fixture
def world() -> SandboxWorld:
    sandbox = SandboxWorld(tick=1)
    sandbox.add_zone(HOME, controller_level=3)
    return sandbox


@pytest.fixture
def config() -> SchedulerConfig:
    return SchedulerConfig()


@pytest.fixture
def scheduler(config: SchedulerConfig) -> Scheduler:
    return Scheduler(config)
