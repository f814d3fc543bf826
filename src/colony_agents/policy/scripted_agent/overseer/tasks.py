"""
Task family for the Overseer policy.

A task is the smallest unit of work: one step against one agent per tick.
The family is closed (see ``TASK_VARIANTS``); each variant carries a
``TaskType`` tag used for grouping during matching and for archetype pinning.

Every step returns a ``StepOutcome`` instead of calling back into the
scheduler:
- working:  keep this task next tick
- complete: goal reached, advance the list
- cancel:   give up, advance the list
- switch:   replace the whole task list with a freshly built one

Shared step rules:
1. An agent within ``expiry_ticks`` of the end of its life cancels immediately.
2. ``not_in_range`` moves toward the target; transient codes are retried next tick.
3. Any other action failure cancels.
4. Non-transient movement failures accumulate; at ``move_failure_limit`` the task cancels.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Optional

from colony_agents.policy.scripted_agent.common.geometry import Position
from colony_agents.policy.scripted_agent.common.roles import Archetype

from .config import SchedulerConfig
from .task_list import TaskList
from .types import ActionResult, AgentView, CancelReason, Capability, RelayRole, StationKind, TaskType
from .world import WorldState

WORK_AND_CARRY = frozenset({Capability.WORK, Capability.CARRY})

# Stations a full harvester can unload into
DELIVERY_STATIONS = (StationKind.SPAWN, StationKind.EXTENSION, StationKind.TOWER)


def claim_key(zone: str) -> str:
    return f"claim:{zone}"


class OutcomeKind(Enum):
    WORKING = "working"
    COMPLETE = "complete"
    CANCEL = "cancel"
    SWITCH = "switch"


@dataclass
class StepOutcome:
    kind: OutcomeKind
    reason: Optional[CancelReason] = None
    task_list: Optional[TaskList] = None

    @classmethod
    def working(cls) -> StepOutcome:
        return cls(OutcomeKind.WORKING)

    @classmethod
    def complete(cls) -> StepOutcome:
        return cls(OutcomeKind.COMPLETE)

    @classmethod
    def cancel(cls, reason: CancelReason) -> StepOutcome:
        return cls(OutcomeKind.CANCEL, reason=reason)

    @classmethod
    def switch(cls, task_list: TaskList) -> StepOutcome:
        return cls(OutcomeKind.SWITCH, task_list=task_list)


class Task:
    """Base for all variants. Subclasses are dataclasses declaring their own targets."""

    task_type: ClassVar[TaskType]
    required_capabilities: ClassVar[frozenset[Capability]] = WORK_AND_CARRY
    requires_cargo: ClassVar[bool] = True

    target_id: Optional[str]
    target_position: Optional[Position]

    def __post_init__(self) -> None:
        self.move_failures = 0

    def priority_weight(self) -> int:
        """0 is the highest priority; callers sort ascending."""
        return 0

    def occupancy_key(self) -> Optional[str]:
        return self.target_id

    def step(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.ticks_to_live is not None and agent.ticks_to_live <= config.expiry_ticks:
            return StepOutcome.cancel(CancelReason.EXPIRED)
        return self.execute(agent, world, config)

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        raise NotImplementedError

    def describe(self) -> str:
        return self.task_type.value

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _resolve(self, world: WorldState) -> Optional[Any]:
        if self.target_id is None:
            return None
        target = world.resolve(self.target_id)
        position = getattr(target, "position", None)
        if position is not None:
            self.target_position = position
        return target

    def _move(
        self, agent: AgentView, world: WorldState, config: SchedulerConfig, position: Position
    ) -> StepOutcome:
        result = world.move_to(agent.id, position)
        if result == ActionResult.OK:
            self.move_failures = 0
            return StepOutcome.working()
        if result.is_transient:
            return StepOutcome.working()
        self.move_failures += 1
        if self.move_failures >= config.move_failure_limit:
            return StepOutcome.cancel(CancelReason.MOVE_FAILED)
        return StepOutcome.working()

    def _act(
        self,
        result: ActionResult,
        agent: AgentView,
        world: WorldState,
        config: SchedulerConfig,
        position: Position,
    ) -> StepOutcome:
        if result == ActionResult.OK or result.is_transient:
            return StepOutcome.working()
        if result == ActionResult.NOT_IN_RANGE:
            return self._move(agent, world, config, position)
        return StepOutcome.cancel(CancelReason.ACTION_REJECTED)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass
class AttackTask(Task):
    task_type: ClassVar[TaskType] = TaskType.ATTACK
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.ATTACK})
    requires_cargo: ClassVar[bool] = False

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        hostile = self._resolve(world)
        if hostile is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        if hostile.hits <= 0:
            return StepOutcome.complete()
        return self._act(world.attack(agent.id, self.target_id), agent, world, config, hostile.position)

    def describe(self) -> str:
        return f"Attack {self.target_id} at {self.target_position}"


@dataclass
class BuildTask(Task):
    task_type: ClassVar[TaskType] = TaskType.BUILD

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.store.is_empty:
            return StepOutcome.complete()
        site = self._resolve(world)
        if site is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        return self._act(world.build(agent.id, self.target_id), agent, world, config, site.position)

    def describe(self) -> str:
        return f"Build at {self.target_position}"


@dataclass
class HarvestTask(Task):
    """Gather from a resource node until (nearly) full.

    With ``switch_on_full`` a full agent switches straight into a delivery
    instead of completing. Chain members leave it off so the chain advances.
    """

    task_type: ClassVar[TaskType] = TaskType.HARVEST
    requires_cargo: ClassVar[bool] = False

    target_id: str
    target_position: Position
    switch_on_full: bool = True

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if _is_full_for_harvest(agent, config):
            return self._on_full(agent, world, config)

        node = self._resolve(world)
        if node is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        if node.energy <= 0:
            if agent.store.used > 0:
                return StepOutcome.complete()
            return StepOutcome.cancel(CancelReason.ACTION_REJECTED)
        return self._act(world.harvest(agent.id, self.target_id), agent, world, config, node.position)

    def _on_full(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if not self.switch_on_full:
            return StepOutcome.complete()
        zone = world.get_zone(agent.zone)
        if zone is None:
            return StepOutcome.complete()

        relays = [
            r
            for r in zone.relays_of(RelayRole.SOURCE)
            if agent.position.in_range_to(r.position, config.relay_link_range)
        ]
        if relays:
            relay = min(relays, key=lambda r: agent.position.range_to(r.position))
            transfer = TransferTask(relay.id, relay.position)
            if agent.archetype == Archetype.SOURCE_HARVESTER.value:
                again = HarvestTask(self.target_id, self.target_position, switch_on_full=False)
                return StepOutcome.switch(TaskList([transfer, again], repeat=True))
            return StepOutcome.switch(TaskList.single(transfer))

        stations = [
            s
            for s in zone.stations
            if s.kind in DELIVERY_STATIONS and s.active and s.owned and s.store.free > 0
        ]
        if stations:
            station = min(stations, key=lambda s: agent.position.range_to(s.position))
            return StepOutcome.switch(TaskList.single(TransferTask(station.id, station.position)))
        return StepOutcome.complete()

    def describe(self) -> str:
        return f"Harvest at {self.target_position}"


@dataclass
class HealTask(Task):
    task_type: ClassVar[TaskType] = TaskType.HEAL
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.HEAL})
    requires_cargo: ClassVar[bool] = False

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        patient = self._resolve(world)
        if patient is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        if patient.hits >= patient.hits_max:
            return StepOutcome.complete()
        return self._act(world.heal(agent.id, self.target_id), agent, world, config, patient.position)

    def describe(self) -> str:
        return f"Heal {self.target_id} at {self.target_position}"


@dataclass
class RepairTask(Task):
    task_type: ClassVar[TaskType] = TaskType.REPAIR

    target_id: str
    target_position: Position
    hits: int = 0
    hits_max: int = 1

    def priority_weight(self) -> int:
        # Remaining hits in permille: the proportionally most damaged target sorts first.
        return self.hits * 1000 // max(self.hits_max, 1)

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.store.is_empty:
            return StepOutcome.complete()
        structure = self._resolve(world)
        if structure is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        self.hits, self.hits_max = structure.hits, structure.hits_max
        if structure.hits >= structure.hits_max:
            return StepOutcome.complete()
        return self._act(world.repair(agent.id, self.target_id), agent, world, config, structure.position)

    def describe(self) -> str:
        return f"Repair at {self.target_position} [{self.hits}/{self.hits_max}]"


@dataclass
class TransferTask(Task):
    task_type: ClassVar[TaskType] = TaskType.TRANSFER
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.CARRY})

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.store.is_empty:
            return StepOutcome.complete()
        target = self._resolve(world)
        if target is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        return self._act(world.transfer(agent.id, self.target_id), agent, world, config, target.position)

    def describe(self) -> str:
        return f"Transfer to {self.target_position}"


@dataclass
class UpgradeTask(Task):
    task_type: ClassVar[TaskType] = TaskType.UPGRADE

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.store.is_empty:
            return StepOutcome.complete()
        controller = self._resolve(world)
        if controller is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        return self._act(world.upgrade(agent.id, self.target_id), agent, world, config, controller.position)

    def describe(self) -> str:
        return f"Upgrade controller at {self.target_position}"


@dataclass
class TravelTask(Task):
    """Move to within ``range`` of a position, or of a live object when ``target_id`` is set."""

    task_type: ClassVar[TaskType] = TaskType.TRAVEL
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.MOVE})
    requires_cargo: ClassVar[bool] = False

    target_position: Position
    range: int = 1
    target_id: Optional[str] = None

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if self.target_id is not None and self._resolve(world) is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        if agent.position.in_range_to(self.target_position, self.range):
            return StepOutcome.complete()
        return self._move(agent, world, config, self.target_position)

    def describe(self) -> str:
        return f"Travel to {self.target_position}"


@dataclass
class ClaimTask(Task):
    """Walk to a zone and claim its controller."""

    task_type: ClassVar[TaskType] = TaskType.CLAIM
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.CLAIM})
    requires_cargo: ClassVar[bool] = False

    target_position: Position
    target_id: Optional[str] = None

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if agent.zone != self.target_position.zone:
            return self._move(agent, world, config, self.target_position)

        zone = world.get_zone(self.target_position.zone)
        if zone is None or zone.controller is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)
        controller = zone.controller
        if controller.owned:
            return StepOutcome.complete()
        self.target_id = controller.id
        self.target_position = controller.position
        return self._act(world.claim(agent.id, controller.id), agent, world, config, controller.position)

    def occupancy_key(self) -> Optional[str]:
        # Anchor and controller targets of the same zone share one key
        return claim_key(self.target_position.zone)

    def describe(self) -> str:
        return f"Claim {self.target_position.zone}"


@dataclass
class WithdrawTask(Task):
    """Take resource from a store until the agent is full or the store runs dry."""

    task_type: ClassVar[TaskType] = TaskType.WITHDRAW
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.CARRY})
    requires_cargo: ClassVar[bool] = False

    target_id: str
    target_position: Position

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        source = self._resolve(world)
        if source is None:
            return StepOutcome.cancel(CancelReason.TARGET_GONE)

        if agent.store.is_full or source.store.used <= 0:
            if agent.store.used <= 0:
                return StepOutcome.cancel(CancelReason.ACTION_REJECTED)
            return StepOutcome.complete()

        return self._act(world.withdraw(agent.id, self.target_id), agent, world, config, source.position)

    def describe(self) -> str:
        return f"Withdraw at {self.target_position}"


@dataclass
class IdleTask(Task):
    task_type: ClassVar[TaskType] = TaskType.IDLE
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset()
    requires_cargo: ClassVar[bool] = False

    duration: int
    target_id: Optional[str] = None
    target_position: Optional[Position] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        self.remaining = self.duration

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if self.remaining <= 0:
            # Rearm for the next lap of a repeating list
            self.remaining = self.duration
            return StepOutcome.complete()
        self.remaining -= 1
        return StepOutcome.working()

    def describe(self) -> str:
        return f"Idle, {self.remaining} ticks remaining"


@dataclass
class IdleUntilTask(Task):
    """Wait in place until ``until(agent, world)`` holds."""

    task_type: ClassVar[TaskType] = TaskType.IDLE_UNTIL
    required_capabilities: ClassVar[frozenset[Capability]] = frozenset()
    requires_cargo: ClassVar[bool] = False

    until: Callable[[AgentView, WorldState], bool]
    reason: str = "condition"
    target_id: Optional[str] = None
    target_position: Optional[Position] = None

    def execute(self, agent: AgentView, world: WorldState, config: SchedulerConfig) -> StepOutcome:
        if self.until(agent, world):
            return StepOutcome.complete()
        return StepOutcome.working()

    def describe(self) -> str:
        return f"Idle until {self.reason}"


TASK_VARIANTS: tuple[type[Task], ...] = (
    AttackTask,
    BuildTask,
    ClaimTask,
    HarvestTask,
    HealTask,
    IdleTask,
    IdleUntilTask,
    RepairTask,
    TransferTask,
    TravelTask,
    UpgradeTask,
    WithdrawTask,
)


def list_capabilities(task_list: TaskList) -> frozenset[Capability]:
    """Union of the capabilities every task in the list needs."""
    needed: frozenset[Capability] = frozenset()
    for task in task_list.tasks:
        needed = needed | task.required_capabilities
    return needed


def relay_has_energy(relay_id: str) -> Callable[[AgentView, WorldState], bool]:
    def _check(agent: AgentView, world: WorldState) -> bool:
        relay = world.resolve(relay_id)
        return relay is not None and relay.store.used > 0

    return _check


def _is_full_for_harvest(agent: AgentView, config: SchedulerConfig) -> bool:
    free = agent.store.free
    if free == 0:
        return True
    return agent.store.capacity > config.harvest_full_margin and free < config.harvest_full_margin
