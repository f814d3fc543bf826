"""Unit tests for the task family: step rules and per-variant goal checks."""

from __future__ import annotations

import pytest

from colony_agents.policy.scripted_agent.common.geometry import Position, zone_anchor
from colony_agents.policy.scripted_agent.overseer.config import SchedulerConfig
from colony_agents.policy.scripted_agent.overseer.sandbox import SandboxWorld
from colony_agents.policy.scripted_agent.overseer.task_list import TaskList
from colony_agents.policy.scripted_agent.overseer.tasks import (
    TASK_VARIANTS,
    AttackTask,
    BuildTask,
    ClaimTask,
    HarvestTask,
    IdleTask,
    IdleUntilTask,
    OutcomeKind,
    RepairTask,
    TransferTask,
    TravelTask,
    WithdrawTask,
    claim_key,
)
from colony_agents.policy.scripted_agent.overseer.types import (
    ActionResult,
    CancelReason,
    Capability,
    RelayRole,
    StationKind,
    StructureKind,
    TaskType,
)

HOME = "W1N1"
WORKER_BODY = (Capability.WORK, Capability.CARRY, Capability.MOVE)


class TestCapabilityContract:
    @pytest.mark.parametrize(
        "variant,expected",
        [
            (AttackTask, {Capability.ATTACK}),
            (ClaimTask, {Capability.CLAIM}),
            (TravelTask, {Capability.MOVE}),
            (TransferTask, {Capability.CARRY}),
            (WithdrawTask, {Capability.CARRY}),
            (BuildTask, {Capability.WORK, Capability.CARRY}),
            (HarvestTask, {Capability.WORK, Capability.CARRY}),
        ],
    )
    def test_required_capabilities(self, variant, expected) -> None:
        assert variant.required_capabilities == frozenset(expected)

    def test_cargo_requirement(self) -> None:
        no_cargo = {v.task_type for v in TASK_VARIANTS if not v.requires_cargo}
        assert no_cargo == {
            TaskType.ATTACK,
            TaskType.CLAIM,
            TaskType.HARVEST,
            TaskType.HEAL,
            TaskType.IDLE,
            TaskType.IDLE_UNTIL,
            TaskType.TRAVEL,
            TaskType.WITHDRAW,
        }

    def test_variants_have_unique_tags(self) -> None:
        tags = [v.task_type for v in TASK_VARIANTS]
        assert len(tags) == len(set(tags)) == len(TaskType)


class TestMovementFailures:
    def test_cancels_after_three_failed_moves(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY)
        world.force_move_result(agent.id, ActionResult.NO_PATH)
        task = TravelTask(Position(HOME, 40, 40))

        kinds = [task.step(agent, world, config).kind for _ in range(3)]

        assert kinds == [OutcomeKind.WORKING, OutcomeKind.WORKING, OutcomeKind.CANCEL]
        assert task.step(agent, world, config).reason == CancelReason.MOVE_FAILED

    def test_tired_is_transient(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY)
        task = TravelTask(Position(HOME, 40, 40))

        world.force_move_result(agent.id, ActionResult.NO_PATH)
        task.step(agent, world, config)
        task.step(agent, world, config)
        world.force_move_result(agent.id, ActionResult.TIRED)
        for _ in range(5):
            assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert task.move_failures == 2

        world.force_move_result(agent.id, ActionResult.NO_PATH)
        assert task.step(agent, world, config).reason == CancelReason.MOVE_FAILED

    def test_successful_move_resets_counter(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY)
        task = TravelTask(Position(HOME, 40, 40))

        world.force_move_result(agent.id, ActionResult.NO_PATH)
        task.step(agent, world, config)
        task.step(agent, world, config)
        world.force_move_result(agent.id, None)
        task.step(agent, world, config)
        assert task.move_failures == 0
        assert agent.position == Position(HOME, 11, 11)


class TestExpiry:
    def test_any_task_cancels_near_end_of_life(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY, ticks_to_live=2)
        outcome = TravelTask(Position(HOME, 40, 40)).step(agent, world, config)
        assert outcome.kind == OutcomeKind.CANCEL
        assert outcome.reason == CancelReason.EXPIRED
        assert agent.position == Position(HOME, 10, 10)


class TestHarvest:
    def test_full_worker_delivers_to_nearby_source_relay(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10)
        relay = world.add_relay(HOME, RelayRole.SOURCE, 12, 11)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=50)

        outcome = HarvestTask(node.id, node.position).step(agent, world, config)

        assert outcome.kind == OutcomeKind.SWITCH
        assert not outcome.task_list.repeat
        assert outcome.task_list.current_task().target_id == relay.id

    def test_dedicated_harvester_gets_repeating_chain(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10)
        relay = world.add_relay(HOME, RelayRole.SOURCE, 12, 11)
        agent = world.add_agent("source_harvester-0-0", HOME, 11, 11, WORKER_BODY, used=50)

        outcome = HarvestTask(node.id, node.position).step(agent, world, config)

        assert outcome.kind == OutcomeKind.SWITCH
        chain = outcome.task_list
        assert chain.repeat
        assert [t.task_type for t in chain.tasks] == [TaskType.TRANSFER, TaskType.HARVEST]
        assert chain.tasks[0].target_id == relay.id
        assert chain.tasks[1].switch_on_full is False

    def test_full_worker_falls_back_to_station(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10)
        world.add_station(HOME, StationKind.SPAWN, 40, 40, capacity=300, used=0)
        extension = world.add_station(HOME, StationKind.EXTENSION, 14, 14, capacity=50, used=0)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=45)

        outcome = HarvestTask(node.id, node.position).step(agent, world, config)

        assert outcome.kind == OutcomeKind.SWITCH
        assert outcome.task_list.current_task().target_id == extension.id

    def test_chain_member_completes_when_full(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=50)
        outcome = HarvestTask(node.id, node.position, switch_on_full=False).step(agent, world, config)
        assert outcome.kind == OutcomeKind.COMPLETE

    def test_depleted_node(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10, energy=0)
        empty = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY)
        loaded = world.add_agent("worker-0-1", HOME, 9, 9, WORKER_BODY, used=20)

        assert HarvestTask(node.id, node.position).step(empty, world, config).kind == OutcomeKind.CANCEL
        assert HarvestTask(node.id, node.position).step(loaded, world, config).kind == OutcomeKind.COMPLETE

    def test_out_of_range_moves_toward_node(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        node = world.add_node(HOME, 10, 10)
        agent = world.add_agent("worker-0-0", HOME, 15, 10, WORKER_BODY)
        outcome = HarvestTask(node.id, node.position).step(agent, world, config)
        assert outcome.kind == OutcomeKind.WORKING
        assert agent.position == Position(HOME, 14, 10)


class TestWithdraw:
    def test_full_agent_completes(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        storage = world.add_station(HOME, StationKind.STORAGE, 10, 10, capacity=10_000, used=5_000)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=50)
        assert WithdrawTask(storage.id, storage.position).step(agent, world, config).kind == OutcomeKind.COMPLETE

    def test_empty_source_with_cargo_completes(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        storage = world.add_station(HOME, StationKind.STORAGE, 10, 10, capacity=10_000, used=0)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=10)
        assert WithdrawTask(storage.id, storage.position).step(agent, world, config).kind == OutcomeKind.COMPLETE

    def test_empty_source_without_cargo_cancels(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        storage = world.add_station(HOME, StationKind.STORAGE, 10, 10, capacity=10_000, used=0)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY)
        outcome = WithdrawTask(storage.id, storage.position).step(agent, world, config)
        assert outcome.reason == CancelReason.ACTION_REJECTED

    def test_withdraw_fills_agent(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        storage = world.add_station(HOME, StationKind.STORAGE, 10, 10, capacity=10_000, used=5_000)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY)
        assert WithdrawTask(storage.id, storage.position).step(agent, world, config).kind == OutcomeKind.WORKING
        assert agent.store.used == 50
        assert storage.store.used == 4_950


class TestDeliveryTasks:
    def test_transfer_into_full_station_is_rejected(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        spawn = world.add_station(HOME, StationKind.SPAWN, 10, 10, capacity=300, used=300)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=50)
        outcome = TransferTask(spawn.id, spawn.position).step(agent, world, config)
        assert outcome.reason == CancelReason.ACTION_REJECTED

    def test_transfer_completes_once_empty(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        spawn = world.add_station(HOME, StationKind.SPAWN, 10, 10, capacity=300)
        agent = world.add_agent("worker-0-0", HOME, 11, 11, WORKER_BODY, used=50)
        task = TransferTask(spawn.id, spawn.position)
        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert task.step(agent, world, config).kind == OutcomeKind.COMPLETE
        assert spawn.store.used == 50

    def test_build_completes_when_cargo_spent(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        site = world.add_site(HOME, 12, 12, progress_total=1_000)
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY, used=5)
        task = BuildTask(site.id, site.position)
        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert site.progress == 5
        assert task.step(agent, world, config).kind == OutcomeKind.COMPLETE

    def test_target_gone_cancels(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY, used=50)
        outcome = BuildTask("site-404", Position(HOME, 12, 12)).step(agent, world, config)
        assert outcome.reason == CancelReason.TARGET_GONE


class TestRepair:
    def test_weight_is_remaining_hits_permille(self) -> None:
        task = RepairTask("wall-1", Position(HOME, 1, 1), hits=250, hits_max=1_000)
        assert task.priority_weight() == 250

    def test_more_damaged_sorts_first(self) -> None:
        light = RepairTask("road-1", Position(HOME, 1, 1), hits=4_000, hits_max=5_000)
        heavy = RepairTask("rampart-1", Position(HOME, 2, 2), hits=30_000, hits_max=300_000)
        assert heavy.priority_weight() < light.priority_weight()

    def test_completes_at_full_hits(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        road = world.add_structure(HOME, StructureKind.ROAD, 12, 12, hits=4_950, hits_max=5_000)
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY, used=50)
        task = RepairTask(road.id, road.position, road.hits, road.hits_max)
        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert road.hits == 5_000
        assert task.step(agent, world, config).kind == OutcomeKind.COMPLETE


class TestAttackAndClaim:
    def test_attack_completes_at_zero_hits(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        hostile = world.add_hostile(HOME, 10, 10, hits=0)
        agent = world.add_agent("melee-0-0", HOME, 11, 11, (Capability.MOVE, Capability.ATTACK))
        assert AttackTask(hostile.id, hostile.position).step(agent, world, config).kind == OutcomeKind.COMPLETE

    def test_claim_travels_to_other_zone(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        zone = world.add_zone("W2N1", owned=False)
        agent = world.add_agent("claimer-0-0", HOME, 10, 10, (Capability.CLAIM, Capability.MOVE))
        task = ClaimTask(zone.controller.position, target_id=zone.controller.id)

        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert agent.zone == "W2N1"

    def test_claim_takes_controller(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        zone = world.add_zone("W2N1", owned=False)
        controller = zone.controller
        x, y = controller.position.x, controller.position.y - 1
        agent = world.add_agent("claimer-0-0", "W2N1", x, y, (Capability.CLAIM,))
        task = ClaimTask(controller.position, target_id=controller.id)

        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        assert controller.owned
        assert task.step(agent, world, config).kind == OutcomeKind.COMPLETE

    def test_claim_rejected_cancels(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        zone = world.add_zone("W2N1", owned=False, reserved=True)
        controller = zone.controller
        x, y = controller.position.x, controller.position.y - 1
        agent = world.add_agent("claimer-0-0", "W2N1", x, y, (Capability.CLAIM,))
        outcome = ClaimTask(controller.position, target_id=controller.id).step(agent, world, config)
        assert outcome.reason == CancelReason.ACTION_REJECTED

    def test_claim_key_survives_retargeting(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        zone = world.add_zone("W2N1", owned=False)
        agent = world.add_agent("claimer-0-0", "W2N1", 10, 10, (Capability.CLAIM, Capability.MOVE))
        task = ClaimTask(zone_anchor("W2N1"))
        assert task.occupancy_key() == claim_key("W2N1")

        task.step(agent, world, config)

        assert task.target_position == zone.controller.position
        assert task.occupancy_key() == claim_key("W2N1")


class TestIdle:
    def test_counts_down_then_completes(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY)
        task = IdleTask(2)

        kinds = [task.step(agent, world, config).kind for _ in range(3)]

        assert kinds == [OutcomeKind.WORKING, OutcomeKind.WORKING, OutcomeKind.COMPLETE]

    def test_rearms_for_each_lap_of_a_repeating_list(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        agent = world.add_agent("worker-0-0", HOME, 10, 10, WORKER_BODY)
        task = IdleTask(2)
        task_list = TaskList([task], repeat=True)

        for _ in range(2):
            kinds = [task_list.current_task().step(agent, world, config).kind for _ in range(3)]
            assert kinds == [OutcomeKind.WORKING, OutcomeKind.WORKING, OutcomeKind.COMPLETE]
            assert task_list.advance() is task
        assert task.describe() == "Idle, 2 ticks remaining"


class TestIdleUntil:
    def test_waits_for_predicate(self, world: SandboxWorld, config: SchedulerConfig) -> None:
        relay = world.add_relay(HOME, RelayRole.STORAGE, 10, 10)
        agent = world.add_agent("storager-0-0", HOME, 11, 11, WORKER_BODY)
        task = IdleUntilTask(lambda a, w: w.resolve(relay.id).store.used > 0, reason="relay filled")

        assert task.step(agent, world, config).kind == OutcomeKind.WORKING
        relay.store.used = 100
        assert task.step(agent, world, config).kind == OutcomeKind.COMPLETE
        assert task.describe() == "Idle until relay filled"
