"""Overseer scripted colony policy: task scheduling and population control."""

from colony_agents.policy.scripted_agent.overseer.config import (
    OverseerConfig,
    PopulationConfig,
    SchedulerConfig,
    SpawnGoal,
)
from colony_agents.policy.scripted_agent.overseer.policy import OverseerPolicy
from colony_agents.policy.scripted_agent.overseer.population import (
    PopulationController,
    SpawnRequest,
    default_spawn_goals,
)
from colony_agents.policy.scripted_agent.overseer.sandbox import SandboxWorld
from colony_agents.policy.scripted_agent.overseer.scheduler import Scheduler, TickReport
from colony_agents.policy.scripted_agent.overseer.task_list import TaskList
from colony_agents.policy.scripted_agent.overseer.tasks import (
    AttackTask,
    BuildTask,
    ClaimTask,
    HarvestTask,
    HealTask,
    IdleTask,
    IdleUntilTask,
    RepairTask,
    StepOutcome,
    Task,
    TransferTask,
    TravelTask,
    UpgradeTask,
    WithdrawTask,
)

__all__ = [
    "OverseerPolicy",
    "Scheduler",
    "TickReport",
    "PopulationController",
    "SpawnRequest",
    "default_spawn_goals",
    "SandboxWorld",
    "TaskList",
    # Configuration
    "OverseerConfig",
    "PopulationConfig",
    "SchedulerConfig",
    "SpawnGoal",
    # Tasks
    "Task",
    "StepOutcome",
    "AttackTask",
    "BuildTask",
    "ClaimTask",
    "HarvestTask",
    "HealTask",
    "IdleTask",
    "IdleUntilTask",
    "RepairTask",
    "TransferTask",
    "TravelTask",
    "UpgradeTask",
    "WithdrawTask",
]
