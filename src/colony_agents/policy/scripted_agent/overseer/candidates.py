"""
Candidate generation for the Overseer scheduler.

Candidates are freshly built TaskLists offered to idle agents. Three pools:
- directive candidates: one list per live operator marker (``claim:<zone>``)
- zone candidates: per controlled zone, in priority order (threats first)
- default fallbacks: built per agent when no candidate matched

Zone candidate order:
    attack -> upgrade -> towers -> extensions -> spawns
    -> controller relays -> storage relays -> construction -> repair
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from colony_agents.policy.scripted_agent.common.geometry import Position, zone_anchor
from colony_agents.policy.scripted_agent.common.roles import Archetype
from colony_agents.policy.scripted_agent.common.tag_utils import parse_directive

from .config import SchedulerConfig
from .debug_logger import DebugLogger
from .occupancy import OccupancyTracker
from .task_list import TaskList
from .tasks import (
    AttackTask,
    BuildTask,
    ClaimTask,
    HarvestTask,
    IdleUntilTask,
    RepairTask,
    Task,
    TransferTask,
    TravelTask,
    UpgradeTask,
    WithdrawTask,
    claim_key,
    relay_has_energy,
)
from .types import (
    AgentView,
    Capability,
    RelayRole,
    RelayView,
    ResourceNodeView,
    StationKind,
    StructureKind,
    StructureView,
    ZoneView,
)
from .world import WorldState

CLAIM_DIRECTIVE = "claim"
DEFEND_DIRECTIVE = "defend"


@dataclass
class DirectiveCandidates:
    task_lists: list[TaskList] = field(default_factory=list)
    rally: Optional[Position] = None  # Position of the ``defend`` marker, if any
    pending_claims: int = 0


# ---------------------------------------------------------------------------
# Directive candidates
# ---------------------------------------------------------------------------


def directive_candidates(
    world: WorldState,
    occupancy: OccupancyTracker,
    debug_logger: Optional[DebugLogger] = None,
) -> DirectiveCandidates:
    result = DirectiveCandidates()
    for marker in world.directives():
        kind, argument = parse_directive(marker.name)
        if kind == DEFEND_DIRECTIVE:
            result.rally = marker.position
            continue
        if kind != CLAIM_DIRECTIVE:
            continue

        if not argument:
            _log(debug_logger, world.tick, "directive_removed", f"{marker.name}: no zone named")
            world.remove_directive(marker.name)
            continue

        zone = world.get_zone(argument)
        controller = zone.controller if zone is not None else None
        if controller is not None and (controller.owned or controller.reserved):
            _log(debug_logger, world.tick, "directive_removed", f"{marker.name}: zone already held")
            world.remove_directive(marker.name)
            continue

        result.pending_claims += 1
        if controller is not None:
            target = ClaimTask(controller.position, target_id=controller.id)
        else:
            target = ClaimTask(zone_anchor(argument))
        if occupancy.target_count(claim_key(argument)) > 0:
            continue
        result.task_lists.append(TaskList.single(target))
    return result


# ---------------------------------------------------------------------------
# Zone candidates
# ---------------------------------------------------------------------------


def zone_candidates(zone: ZoneView, occupancy: OccupancyTracker, config: SchedulerConfig) -> list[TaskList]:
    """Candidate lists for one zone, highest priority first. Zones without a controller get none."""
    if zone.controller is None:
        return []

    candidates: list[TaskList] = []
    storage = zone.storage_with_energy()

    def free_at(position: Position, cap: int) -> bool:
        return not occupancy.is_position_occupied(zone.name, position, cap)

    def offer(task: Task) -> None:
        if storage is not None:
            top_up = WithdrawTask(storage.id, storage.position)
            candidates.append(TaskList([top_up, task], primary_index=1))
        else:
            candidates.append(TaskList.single(task))

    # Threat response
    for hostile in zone.hostiles:
        slots = config.attack_slots - occupancy.target_count(hostile.id)
        for _ in range(max(slots, 0)):
            candidates.append(TaskList.single(AttackTask(hostile.id, hostile.position)))

    controller = zone.controller
    if controller.owned and controller.active:
        wanted = 0
        if controller.ticks_to_downgrade < config.downgrade_threshold:
            wanted += 1
        if controller.level < config.bootstrap_controller_level:
            wanted += 1
        slots = wanted - occupancy.position_count(zone.name, controller.position)
        for _ in range(max(slots, 0)):
            candidates.append(TaskList.single(UpgradeTask(controller.id, controller.position)))

    cap = config.occupancy_cap

    for tower in zone.stations_of(StationKind.TOWER):
        if tower.active and tower.store.free > tower.store.capacity // 2 and free_at(tower.position, cap):
            offer(TransferTask(tower.id, tower.position))

    extension_count = 0
    for extension in zone.stations_of(StationKind.EXTENSION):
        if extension.active and extension.owned and extension.store.free > 0 and free_at(extension.position, cap):
            offer(TransferTask(extension.id, extension.position))
            extension_count += 1

    for spawn in zone.stations_of(StationKind.SPAWN):
        if spawn.active and spawn.store.free > 0 and free_at(spawn.position, cap):
            offer(TransferTask(spawn.id, spawn.position))

    if extension_count == 0:
        for relay in zone.relays_of(RelayRole.CONTROLLER):
            if not free_at(relay.position, cap):
                continue
            if not relay.position.in_range_to(controller.position, config.relay_link_range):
                continue
            if relay.store.used * 3 <= relay.store.capacity * 2:
                continue
            chain = [WithdrawTask(relay.id, relay.position), UpgradeTask(controller.id, controller.position)]
            candidates.append(TaskList(chain))

    for relay in zone.relays_of(RelayRole.STORAGE):
        if relay.store.used <= 0 or not free_at(relay.position, cap):
            continue
        target = _nearest_storage_with_room(zone, relay, config)
        if target is None:
            continue
        chain = [WithdrawTask(relay.id, relay.position), TransferTask(target.id, target.position)]
        candidates.append(TaskList(chain))

    for site in zone.construction_sites:
        if free_at(site.position, cap):
            offer(BuildTask(site.id, site.position))

    repairs = 0
    for structure in zone.structures:
        if repairs >= config.repair_limit:
            break
        if not _needs_repair(structure, zone, config) or not free_at(structure.position, cap):
            continue
        offer(RepairTask(structure.id, structure.position, structure.hits, structure.hits_max))
        repairs += 1

    return candidates


def _nearest_storage_with_room(zone: ZoneView, relay: RelayView, config: SchedulerConfig):
    storages = [
        s
        for s in zone.stations_of(StationKind.STORAGE)
        if relay.position.in_range_to(s.position, config.relay_link_range) and s.store.free > s.store.capacity // 2
    ]
    if not storages:
        return None
    return min(storages, key=lambda s: relay.position.range_to(s.position))


def _needs_repair(structure: StructureView, zone: ZoneView, config: SchedulerConfig) -> bool:
    if structure.hits * 2 >= structure.hits_max:
        return False
    if structure.kind == StructureKind.WALL:
        level = zone.controller.level if zone.controller is not None else 0
        return level >= config.wall_min_controller_level and structure.hits <= config.wall_repair_ceiling
    if structure.kind == StructureKind.RAMPART:
        return structure.hits <= config.rampart_repair_ceiling
    return True


# ---------------------------------------------------------------------------
# Default fallbacks
# ---------------------------------------------------------------------------


def default_task_list(
    agent: AgentView,
    world: WorldState,
    occupancy: OccupancyTracker,
    config: SchedulerConfig,
    roster: Sequence[AgentView],
    rally: Optional[Position] = None,
) -> Optional[TaskList]:
    """Standing job for an agent nothing else matched. None leaves it idle."""
    zone = world.get_zone(agent.zone)
    archetype = agent.archetype

    if zone is not None and zone.is_mine:
        if archetype == Archetype.SOURCE_HARVESTER.value:
            return _harvester_chain(agent, zone, occupancy, config, roster)
        if archetype == Archetype.UPGRADER.value:
            return _upgrader_chain(agent, zone)
        if archetype == Archetype.STORAGER.value:
            return _storager_chain(agent, zone, config)

    if agent.has(Capability.ATTACK):
        if rally is None and zone is not None and zone.controller is not None:
            rally = zone.controller.position
        if rally is None or agent.position.in_range_to(rally, config.rally_range):
            return None
        return TaskList.single(TravelTask(rally, range=config.rally_range))

    if agent.has(Capability.CLAIM):
        return None

    if zone is None or not zone.is_mine:
        return _travel_home(world, config)

    if agent.has(Capability.WORK):
        if agent.store.used > 0:
            return TaskList.single(UpgradeTask(zone.controller.id, zone.controller.position))
        node = cheapest_node(agent, zone, occupancy, config, roster)
        if node is not None:
            return TaskList.single(HarvestTask(node.id, node.position))
    return None


def node_cost(
    agent: AgentView,
    node: ResourceNodeView,
    zone: ZoneView,
    occupancy: OccupancyTracker,
    config: SchedulerConfig,
    roster: Sequence[AgentView],
) -> int:
    """Lower is better: staffed, crowded or dedicated nodes cost more."""
    cost = occupancy.position_count(zone.name, node.position) * config.node_occupancy_weight
    cost += agent.position.range_to(node.position)
    neighbours = [a for a in roster if a.id != agent.id and a.position.is_near_to(node.position)]
    if len(neighbours) >= node.slots:
        cost += config.busy_node_penalty
    if any(a.archetype == Archetype.SOURCE_HARVESTER.value for a in neighbours):
        cost += config.dedicated_node_penalty
    return cost


def cheapest_node(
    agent: AgentView,
    zone: ZoneView,
    occupancy: OccupancyTracker,
    config: SchedulerConfig,
    roster: Sequence[AgentView],
    nodes: Optional[Sequence[ResourceNodeView]] = None,
) -> Optional[ResourceNodeView]:
    if nodes is None:
        nodes = zone.resource_nodes
    active = [n for n in nodes if n.energy > 0]
    if not active:
        return None
    return min(active, key=lambda n: node_cost(agent, n, zone, occupancy, config, roster))


def _harvester_chain(
    agent: AgentView,
    zone: ZoneView,
    occupancy: OccupancyTracker,
    config: SchedulerConfig,
    roster: Sequence[AgentView],
) -> Optional[TaskList]:
    relays = zone.relays_of(RelayRole.SOURCE)
    linked = [
        n
        for n in zone.resource_nodes
        if any(n.position.in_range_to(r.position, config.harvester_relay_range) for r in relays)
    ]
    node = cheapest_node(agent, zone, occupancy, config, roster, linked)
    if node is None:
        return None
    relay = min(relays, key=lambda r: node.position.range_to(r.position))
    harvest = HarvestTask(node.id, node.position, switch_on_full=False)
    return TaskList([harvest, TransferTask(relay.id, relay.position)], repeat=True)


def _upgrader_chain(agent: AgentView, zone: ZoneView) -> Optional[TaskList]:
    relays = zone.relays_of(RelayRole.CONTROLLER)
    if not relays or zone.controller is None:
        return None
    relay = min(relays, key=lambda r: agent.position.range_to(r.position))
    chain = [WithdrawTask(relay.id, relay.position), UpgradeTask(zone.controller.id, zone.controller.position)]
    return TaskList(chain, repeat=True)


def _storager_chain(agent: AgentView, zone: ZoneView, config: SchedulerConfig) -> Optional[TaskList]:
    for relay in sorted(zone.relays_of(RelayRole.STORAGE), key=lambda r: agent.position.range_to(r.position)):
        storages = [
            s
            for s in zone.stations_of(StationKind.STORAGE)
            if relay.position.in_range_to(s.position, config.relay_link_range)
        ]
        if not storages:
            continue
        storage = min(storages, key=lambda s: relay.position.range_to(s.position))
        chain = [
            WithdrawTask(relay.id, relay.position),
            TransferTask(storage.id, storage.position),
            IdleUntilTask(relay_has_energy(relay.id), reason=f"relay {relay.id} has energy"),
        ]
        return TaskList(chain, repeat=True)
    return None


def _travel_home(world: WorldState, config: SchedulerConfig) -> Optional[TaskList]:
    for zone in world.zones():
        if zone.is_mine:
            return TaskList.single(TravelTask(zone.controller.position, range=config.rally_range))
    return None


def _log(debug_logger: Optional[DebugLogger], tick: int, kind: str, detail: str) -> None:
    if debug_logger is not None:
        debug_logger.record_event(tick, kind, detail)
