"""End-to-end scheduling scenarios for the Overseer policy.

Covers:
1. Harvest then switch into delivery when cargo fills
2. Attack the first-generated hostile, complete when it falls
3. Requisition until the node-scaled target is reached
4. Dedicated harvesters only take Harvest work
5. Agents near end of life cancel instead of working
"""

from __future__ import annotations

from colony_agents.policy.scripted_agent.overseer.config import PopulationConfig, SpawnGoal
from colony_agents.policy.scripted_agent.overseer.population import PopulationController
from colony_agents.policy.scripted_agent.overseer.sandbox import SandboxWorld
from colony_agents.policy.scripted_agent.overseer.scheduler import Scheduler
from colony_agents.policy.scripted_agent.overseer.tasks import AttackTask, HarvestTask, TransferTask
from colony_agents.policy.scripted_agent.overseer.types import (
    CancelReason,
    Capability,
    RelayRole,
    StationKind,
    TaskType,
)

HOME = "W1N1"
WORKER_BODY = (Capability.WORK, Capability.CARRY, Capability.MOVE)
MELEE_BODY = (Capability.MOVE, Capability.ATTACK, Capability.ATTACK)


# ---------------------------------------------------------------------------
# 1. Harvest -> switch to Transfer
# ---------------------------------------------------------------------------


class TestHarvestSwitchesToDelivery:
    def test_idle_worker_is_assigned_harvest(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        node = world.add_node(HOME, 10, 10)
        world.add_station(HOME, StationKind.SPAWN, 12, 12, capacity=300, used=0)
        world.add_agent("worker-0-0", HOME, 10, 11, WORKER_BODY)

        report = scheduler.tick(world)

        assert report.assigned == ["worker-0-0"]
        task = scheduler.assignments["worker-0-0"].current_task()
        assert isinstance(task, HarvestTask)
        assert task.target_id == node.id

    def test_full_cargo_switches_to_transfer_into_station(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        world.add_node(HOME, 10, 10)
        spawn = world.add_station(HOME, StationKind.SPAWN, 12, 12, capacity=300, used=0)
        world.add_agent("worker-0-0", HOME, 10, 11, WORKER_BODY)

        switched_at = None
        for _ in range(30):
            report = scheduler.tick(world)
            world.advance()
            if "worker-0-0" in report.switched:
                switched_at = report.tick
                break

        assert switched_at is not None
        task = scheduler.assignments["worker-0-0"].current_task()
        assert isinstance(task, TransferTask)
        assert task.target_id == spawn.id

    def test_delivery_fills_the_station(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        world.add_node(HOME, 10, 10)
        spawn = world.add_station(HOME, StationKind.SPAWN, 12, 12, capacity=300, used=0)
        world.add_agent("worker-0-0", HOME, 10, 11, WORKER_BODY)

        for _ in range(30):
            scheduler.tick(world)
            world.advance()

        assert spawn.store.used > 0


# ---------------------------------------------------------------------------
# 2. Attack the first-generated hostile
# ---------------------------------------------------------------------------


class TestAttackHostile:
    def test_attack_targets_first_generated_hostile(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        first = world.add_hostile(HOME, 20, 20, hits=60)
        world.add_hostile(HOME, 30, 30, hits=60)
        world.add_agent("melee-0-0", HOME, 25, 25, MELEE_BODY)

        scheduler.tick(world)

        task = scheduler.assignments["melee-0-0"].current_task()
        assert isinstance(task, AttackTask)
        assert task.target_id == first.id

    def test_attack_completes_and_list_is_removed(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        first = world.add_hostile(HOME, 20, 20, hits=60)
        world.add_hostile(HOME, 30, 30, hits=60)
        world.add_agent("melee-0-0", HOME, 25, 25, MELEE_BODY)

        completed_report = None
        for _ in range(12):
            report = scheduler.tick(world)
            world.advance()
            if "melee-0-0" in report.completed:
                completed_report = report
                break

        assert completed_report is not None
        assert first.hits == 0
        assert "melee-0-0" not in completed_report.cancelled
        assert "melee-0-0" not in completed_report.active


# ---------------------------------------------------------------------------
# 3. Population sizing with node scaling
# ---------------------------------------------------------------------------


class TestPopulationScaling:
    def test_requisitions_until_scaled_target(self, world: SandboxWorld) -> None:
        world.add_node(HOME, 5, 5)
        world.add_node(HOME, 45, 45)
        world.add_station(HOME, StationKind.SPAWN, 25, 25, capacity=1000, used=1000)
        goal = SpawnGoal(archetype="worker", loadout=list(WORKER_BODY), count=1, node_scaling=1)
        assert goal.target_for(2) == 2

        controller = PopulationController(PopulationConfig())
        accepted = []
        for _ in range(5):
            accepted.extend(r for r in controller.run(world, [goal]) if r.accepted)
            world.advance()

        assert len(accepted) == 2
        assert sorted(a.archetype for a in world.agents()) == ["worker", "worker"]


# ---------------------------------------------------------------------------
# 4. Dedicated harvester pinning
# ---------------------------------------------------------------------------


class TestHarvesterPinning:
    def test_harvester_ignores_transfer_candidates(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        world.add_station(HOME, StationKind.SPAWN, 30, 30, capacity=300, used=0)
        world.add_station(HOME, StationKind.EXTENSION, 31, 30, capacity=50, used=0)
        world.add_node(HOME, 10, 10)
        world.add_relay(HOME, RelayRole.SOURCE, 12, 10)
        world.add_agent("source_harvester-0-0", HOME, 11, 11, WORKER_BODY, used=50)

        for _ in range(15):
            scheduler.tick(world)
            world.advance()
            task_list = scheduler.assignments.get("source_harvester-0-0")
            if task_list is not None:
                assert task_list.primary_task().task_type == TaskType.HARVEST

        assert "source_harvester-0-0" in scheduler.assignments


# ---------------------------------------------------------------------------
# 5. Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_expiring_harvester_cancels(self, world: SandboxWorld, scheduler: Scheduler) -> None:
        world.add_node(HOME, 10, 10)
        world.add_agent("worker-0-0", HOME, 10, 11, WORKER_BODY, ticks_to_live=3)

        report = scheduler.tick(world)

        assert report.assigned == ["worker-0-0"]
        assert report.cancelled["worker-0-0"] == CancelReason.EXPIRED
        assert "worker-0-0" not in scheduler.assignments
        assert all(action != "harvest" for _, action, _, _ in world.actions)
