"""
In-memory world for exercising the Overseer policy.

Implements the ``WorldState`` provider contract with small, deterministic
mechanics: one tile per move, adjacent gather/deliver, ranged build/repair/
upgrade, and agents that materialize the tick after they are requisitioned.
Descriptors are handed out live, so actions are visible immediately.

Usage:
    world = SandboxWorld()
    world.add_zone("W1N1", controller_level=2)
    world.add_station("W1N1", StationKind.SPAWN, 25, 25, capacity=300, used=300)
    world.add_node("W1N1", 10, 10)
    world.add_agent("worker-0-0", "W1N1", 20, 20, WORKER_BODY)
    world.run(policy, ticks=50)
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from colony_agents.policy.scripted_agent.common.geometry import Position

from .types import (
    ActionResult,
    AgentView,
    Capability,
    ConstructionSiteView,
    ControllerView,
    DirectiveMarker,
    HostileView,
    RelayRole,
    RelayView,
    ResourceNodeView,
    SpawnerView,
    StationKind,
    StationView,
    Store,
    StructureKind,
    StructureView,
    ZoneView,
    loadout_cost,
)

AGENT_LIFETIME = 1500
CARRY_CAPACITY = 50

HARVEST_PER_WORK = 2
BUILD_PER_WORK = 5
REPAIR_PER_WORK = 100
UPGRADE_PER_WORK = 1
ATTACK_PER_PART = 30
HEAL_PER_PART = 12

NODE_REGEN_TICKS = 300
DOWNGRADE_RESET = 20_000
WORK_RANGE = 3  # build / repair / upgrade


class SandboxWorld:
    def __init__(self, tick: int = 0) -> None:
        self._tick = tick
        self._zones: dict[str, ZoneView] = {}
        self._agents: dict[str, AgentView] = {}
        self._directives: list[DirectiveMarker] = []
        self._spawning: dict[str, str] = {}  # spawner id -> agent name
        self._move_overrides: dict[str, ActionResult] = {}
        self._fallen: set[str] = set()  # Hostiles at 0 hits, cleared at the next advance
        self._next_id = 0
        self.annotations: dict[str, tuple[str, str]] = {}
        self.actions: list[tuple[str, str, str, ActionResult]] = []  # (agent, action, target, result)
        self.cpu = 0.0

    # ------------------------------------------------------------------
    # Building the world
    # ------------------------------------------------------------------

    def add_zone(
        self,
        name: str,
        owned: bool = True,
        reserved: bool = False,
        controller_level: int = 1,
        ticks_to_downgrade: int = DOWNGRADE_RESET,
        controller_at: Optional[tuple[int, int]] = (25, 40),
    ) -> ZoneView:
        controller = None
        if controller_at is not None:
            controller = ControllerView(
                id=self._new_id("controller"),
                position=Position(name, *controller_at),
                owned=owned,
                reserved=reserved,
                level=controller_level if owned else 0,
                ticks_to_downgrade=ticks_to_downgrade,
            )
        zone = ZoneView(name=name, controller=controller)
        self._zones[name] = zone
        return zone

    def add_agent(
        self,
        name: str,
        zone: str,
        x: int,
        y: int,
        loadout: Sequence[Capability],
        used: int = 0,
        ticks_to_live: Optional[int] = AGENT_LIFETIME,
    ) -> AgentView:
        capacity = CARRY_CAPACITY * list(loadout).count(Capability.CARRY)
        agent = AgentView(
            id=name,
            name=name,
            position=Position(zone, x, y),
            loadout=tuple(loadout),
            store=Store(used=used, capacity=capacity),
            ticks_to_live=ticks_to_live,
        )
        self._agents[agent.id] = agent
        return agent

    def add_station(
        self, zone: str, kind: StationKind, x: int, y: int, capacity: int = 300, used: int = 0, active: bool = True
    ) -> StationView:
        station = StationView(
            id=self._new_id(kind.value),
            kind=kind,
            position=Position(zone, x, y),
            store=Store(used=used, capacity=capacity),
            active=active,
        )
        self._zones[zone].stations.append(station)
        return station

    def add_node(self, zone: str, x: int, y: int, energy: int = 3000, slots: int = 8) -> ResourceNodeView:
        node = ResourceNodeView(
            id=self._new_id("node"),
            position=Position(zone, x, y),
            energy=energy,
            energy_capacity=max(energy, 3000),
            slots=slots,
        )
        self._zones[zone].resource_nodes.append(node)
        return node

    def add_relay(
        self, zone: str, role: RelayRole, x: int, y: int, used: int = 0, capacity: int = 800
    ) -> RelayView:
        relay = RelayView(
            id=self._new_id("relay"), position=Position(zone, x, y), store=Store(used, capacity), role=role
        )
        self._zones[zone].relays.append(relay)
        return relay

    def add_structure(self, zone: str, kind: StructureKind, x: int, y: int, hits: int, hits_max: int) -> StructureView:
        structure = StructureView(
            id=self._new_id(kind.value), kind=kind, position=Position(zone, x, y), hits=hits, hits_max=hits_max
        )
        self._zones[zone].structures.append(structure)
        return structure

    def add_site(self, zone: str, x: int, y: int, progress_total: int = 100) -> ConstructionSiteView:
        position = Position(zone, x, y)
        site = ConstructionSiteView(id=self._new_id("site"), position=position, progress_total=progress_total)
        self._zones[zone].construction_sites.append(site)
        return site

    def add_hostile(self, zone: str, x: int, y: int, hits: int = 100) -> HostileView:
        hostile = HostileView(id=self._new_id("hostile"), position=Position(zone, x, y), hits=hits, hits_max=hits)
        self._zones[zone].hostiles.append(hostile)
        return hostile

    def add_directive(self, name: str, zone: str, x: int = 25, y: int = 25) -> DirectiveMarker:
        marker = DirectiveMarker(name=name, position=Position(zone, x, y))
        self._directives.append(marker)
        return marker

    def force_move_result(self, agent_id: str, result: Optional[ActionResult]) -> None:
        """Make every move by ``agent_id`` return ``result`` (None restores normal movement)."""
        if result is None:
            self._move_overrides.pop(agent_id, None)
        else:
            self._move_overrides[agent_id] = result

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def advance(self) -> None:
        """End the tick: age agents, clear the dead, finish requisitions, regenerate nodes."""
        self._tick += 1
        for agent in list(self._agents.values()):
            if agent.ticks_to_live is None:
                continue
            agent.ticks_to_live -= 1
            if agent.ticks_to_live <= 0 or agent.hits <= 0:
                del self._agents[agent.id]

        for name in self._spawning.values():
            agent = self._agents.get(name)
            if agent is not None:
                agent.ticks_to_live = AGENT_LIFETIME
        self._spawning.clear()

        for zone in self._zones.values():
            zone.hostiles = [h for h in zone.hostiles if h.hits > 0 or h.id not in self._fallen]
            if zone.controller is not None and zone.controller.owned:
                zone.controller.ticks_to_downgrade = max(0, zone.controller.ticks_to_downgrade - 1)
            if self._tick % NODE_REGEN_TICKS == 0:
                for node in zone.resource_nodes:
                    node.energy = node.energy_capacity
        self._fallen = {h.id for zone in self._zones.values() for h in zone.hostiles if h.hits <= 0}

    def run(self, policy: Any, ticks: int) -> list[Any]:
        """Step ``policy`` and advance, ``ticks`` times. Returns the per-tick reports."""
        reports = []
        for _ in range(ticks):
            reports.append(policy.step(self))
            self.advance()
        return reports

    # ------------------------------------------------------------------
    # WorldState: enumeration
    # ------------------------------------------------------------------

    @property
    def tick(self) -> int:
        return self._tick

    def agents(self) -> list[AgentView]:
        return list(self._agents.values())

    def get_agent(self, agent_id: str) -> Optional[AgentView]:
        return self._agents.get(agent_id)

    def zones(self) -> list[ZoneView]:
        return list(self._zones.values())

    def get_zone(self, name: str) -> Optional[ZoneView]:
        return self._zones.get(name)

    def directives(self) -> list[DirectiveMarker]:
        return list(self._directives)

    def remove_directive(self, name: str) -> None:
        self._directives = [d for d in self._directives if d.name != name]

    def resolve(self, object_id: str) -> Optional[Any]:
        if object_id in self._agents:
            return self._agents[object_id]
        for zone in self._zones.values():
            if zone.controller is not None and zone.controller.id == object_id:
                return zone.controller
            for group in (
                zone.stations,
                zone.resource_nodes,
                zone.relays,
                zone.structures,
                zone.construction_sites,
                zone.hostiles,
            ):
                for obj in group:
                    if obj.id == object_id:
                        return obj
        return None

    # ------------------------------------------------------------------
    # WorldState: agent actions
    # ------------------------------------------------------------------

    def move_to(self, agent_id: str, position: Position) -> ActionResult:
        agent = self._agents.get(agent_id)
        if agent is None:
            return self._record(agent_id, "move", str(position), ActionResult.INVALID_TARGET)
        forced = self._move_overrides.get(agent_id)
        if forced is not None:
            return self._record(agent_id, "move", str(position), forced)
        if Capability.MOVE not in agent.capabilities:
            return self._record(agent_id, "move", str(position), ActionResult.NO_PATH)
        agent.position = agent.position.step_toward(position)
        return self._record(agent_id, "move", str(position), ActionResult.OK)

    def harvest(self, agent_id: str, node_id: str) -> ActionResult:
        agent, node = self._agents.get(agent_id), self.resolve(node_id)
        if agent is None or not isinstance(node, ResourceNodeView):
            return self._record(agent_id, "harvest", node_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(node.position):
            return self._record(agent_id, "harvest", node_id, ActionResult.NOT_IN_RANGE)
        if node.energy <= 0:
            return self._record(agent_id, "harvest", node_id, ActionResult.NOT_ENOUGH_RESOURCES)
        if agent.store.free <= 0:
            return self._record(agent_id, "harvest", node_id, ActionResult.FULL)
        amount = min(HARVEST_PER_WORK * agent.count(Capability.WORK), node.energy, agent.store.free)
        node.energy -= amount
        agent.store.used += amount
        return self._record(agent_id, "harvest", node_id, ActionResult.OK)

    def transfer(self, agent_id: str, target_id: str) -> ActionResult:
        agent, target = self._agents.get(agent_id), self.resolve(target_id)
        if agent is None or not isinstance(target, (StationView, RelayView)):
            return self._record(agent_id, "transfer", target_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(target.position):
            return self._record(agent_id, "transfer", target_id, ActionResult.NOT_IN_RANGE)
        if agent.store.is_empty:
            return self._record(agent_id, "transfer", target_id, ActionResult.NOT_ENOUGH_RESOURCES)
        if target.store.free <= 0:
            return self._record(agent_id, "transfer", target_id, ActionResult.FULL)
        amount = min(agent.store.used, target.store.free)
        agent.store.used -= amount
        target.store.used += amount
        return self._record(agent_id, "transfer", target_id, ActionResult.OK)

    def withdraw(self, agent_id: str, target_id: str) -> ActionResult:
        agent, source = self._agents.get(agent_id), self.resolve(target_id)
        if agent is None or not isinstance(source, (StationView, RelayView)):
            return self._record(agent_id, "withdraw", target_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(source.position):
            return self._record(agent_id, "withdraw", target_id, ActionResult.NOT_IN_RANGE)
        if source.store.is_empty:
            return self._record(agent_id, "withdraw", target_id, ActionResult.NOT_ENOUGH_RESOURCES)
        if agent.store.free <= 0:
            return self._record(agent_id, "withdraw", target_id, ActionResult.FULL)
        amount = min(source.store.used, agent.store.free)
        source.store.used -= amount
        agent.store.used += amount
        return self._record(agent_id, "withdraw", target_id, ActionResult.OK)

    def build(self, agent_id: str, site_id: str) -> ActionResult:
        agent, site = self._agents.get(agent_id), self.resolve(site_id)
        if agent is None or not isinstance(site, ConstructionSiteView):
            return self._record(agent_id, "build", site_id, ActionResult.INVALID_TARGET)
        if not agent.position.in_range_to(site.position, WORK_RANGE):
            return self._record(agent_id, "build", site_id, ActionResult.NOT_IN_RANGE)
        if agent.store.is_empty:
            return self._record(agent_id, "build", site_id, ActionResult.NOT_ENOUGH_RESOURCES)
        amount = min(BUILD_PER_WORK * agent.count(Capability.WORK), agent.store.used)
        agent.store.used -= amount
        site.progress += amount
        if site.progress >= site.progress_total:
            zone = self._zones[site.position.zone]
            zone.construction_sites = [s for s in zone.construction_sites if s.id != site.id]
        return self._record(agent_id, "build", site_id, ActionResult.OK)

    def repair(self, agent_id: str, structure_id: str) -> ActionResult:
        agent, structure = self._agents.get(agent_id), self.resolve(structure_id)
        if agent is None or not isinstance(structure, StructureView):
            return self._record(agent_id, "repair", structure_id, ActionResult.INVALID_TARGET)
        if not agent.position.in_range_to(structure.position, WORK_RANGE):
            return self._record(agent_id, "repair", structure_id, ActionResult.NOT_IN_RANGE)
        if agent.store.is_empty:
            return self._record(agent_id, "repair", structure_id, ActionResult.NOT_ENOUGH_RESOURCES)
        amount = min(agent.count(Capability.WORK), agent.store.used)
        agent.store.used -= amount
        structure.hits = min(structure.hits_max, structure.hits + REPAIR_PER_WORK * amount)
        return self._record(agent_id, "repair", structure_id, ActionResult.OK)

    def attack(self, agent_id: str, target_id: str) -> ActionResult:
        agent, hostile = self._agents.get(agent_id), self.resolve(target_id)
        if agent is None or not isinstance(hostile, HostileView):
            return self._record(agent_id, "attack", target_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(hostile.position):
            return self._record(agent_id, "attack", target_id, ActionResult.NOT_IN_RANGE)
        hostile.hits = max(0, hostile.hits - ATTACK_PER_PART * agent.count(Capability.ATTACK))
        return self._record(agent_id, "attack", target_id, ActionResult.OK)

    def heal(self, agent_id: str, target_id: str) -> ActionResult:
        agent, patient = self._agents.get(agent_id), self._agents.get(target_id)
        if agent is None or patient is None:
            return self._record(agent_id, "heal", target_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(patient.position):
            return self._record(agent_id, "heal", target_id, ActionResult.NOT_IN_RANGE)
        patient.hits = min(patient.hits_max, patient.hits + HEAL_PER_PART * agent.count(Capability.HEAL))
        return self._record(agent_id, "heal", target_id, ActionResult.OK)

    def claim(self, agent_id: str, controller_id: str) -> ActionResult:
        agent, controller = self._agents.get(agent_id), self.resolve(controller_id)
        if agent is None or not isinstance(controller, ControllerView):
            return self._record(agent_id, "claim", controller_id, ActionResult.INVALID_TARGET)
        if not agent.position.is_near_to(controller.position):
            return self._record(agent_id, "claim", controller_id, ActionResult.NOT_IN_RANGE)
        if controller.owned or controller.reserved:
            return self._record(agent_id, "claim", controller_id, ActionResult.NOT_OWNER)
        controller.owned = True
        controller.level = 1
        controller.ticks_to_downgrade = DOWNGRADE_RESET
        return self._record(agent_id, "claim", controller_id, ActionResult.OK)

    def upgrade(self, agent_id: str, controller_id: str) -> ActionResult:
        agent, controller = self._agents.get(agent_id), self.resolve(controller_id)
        if agent is None or not isinstance(controller, ControllerView):
            return self._record(agent_id, "upgrade", controller_id, ActionResult.INVALID_TARGET)
        if not controller.owned:
            return self._record(agent_id, "upgrade", controller_id, ActionResult.NOT_OWNER)
        if not agent.position.in_range_to(controller.position, WORK_RANGE):
            return self._record(agent_id, "upgrade", controller_id, ActionResult.NOT_IN_RANGE)
        if agent.store.is_empty:
            return self._record(agent_id, "upgrade", controller_id, ActionResult.NOT_ENOUGH_RESOURCES)
        amount = min(UPGRADE_PER_WORK * agent.count(Capability.WORK), agent.store.used)
        agent.store.used -= amount
        controller.progress += amount
        controller.ticks_to_downgrade = DOWNGRADE_RESET
        return self._record(agent_id, "upgrade", controller_id, ActionResult.OK)

    # ------------------------------------------------------------------
    # WorldState: structures
    # ------------------------------------------------------------------

    def relay_transfer(self, relay_id: str, target_id: str) -> ActionResult:
        source, target = self.resolve(relay_id), self.resolve(target_id)
        if not isinstance(source, RelayView) or not isinstance(target, RelayView):
            return ActionResult.INVALID_TARGET
        if source.store.is_empty:
            return ActionResult.NOT_ENOUGH_RESOURCES
        if target.store.free <= 0:
            return ActionResult.FULL
        amount = min(source.store.used, target.store.free)
        source.store.used -= amount
        target.store.used += amount
        return ActionResult.OK

    def spawners(self) -> list[SpawnerView]:
        views = []
        for zone in self._zones.values():
            if not zone.is_mine:
                continue
            for spawn in zone.stations_of(StationKind.SPAWN):
                if spawn.active:
                    busy = spawn.id in self._spawning
                    views.append(SpawnerView(id=spawn.id, zone=zone.name, store=spawn.store, busy=busy))
        return views

    def energy_available(self, zone: str) -> int:
        view = self._zones.get(zone)
        if view is None:
            return 0
        return sum(s.store.used for s in self._energy_stations(view))

    def spawn(self, spawner_id: str, name: str, loadout: Sequence[Capability]) -> ActionResult:
        spawn = self.resolve(spawner_id)
        if not isinstance(spawn, StationView) or spawn.kind != StationKind.SPAWN:
            return ActionResult.INVALID_TARGET
        if name in self._agents:
            return ActionResult.NAME_EXISTS
        if spawner_id in self._spawning:
            return ActionResult.BUSY
        cost = loadout_cost(list(loadout))
        zone = self._zones[spawn.position.zone]
        if self.energy_available(zone.name) < cost:
            return ActionResult.NOT_ENOUGH_RESOURCES

        remaining = cost
        for station in self._energy_stations(zone):
            taken = min(station.store.used, remaining)
            station.store.used -= taken
            remaining -= taken

        # Built agents appear next to the spawn and start acting next tick
        self.add_agent(name, zone.name, spawn.position.x, spawn.position.y + 1, loadout, ticks_to_live=None)
        self._spawning[spawner_id] = name
        return ActionResult.OK

    # ------------------------------------------------------------------
    # Optional sinks
    # ------------------------------------------------------------------

    def annotate(self, agent_id: str, task: str, task_list: str) -> None:
        self.annotations[agent_id] = (task, task_list)

    def cpu_used(self) -> float:
        return self.cpu

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _energy_stations(self, zone: ZoneView) -> list[StationView]:
        return [s for s in zone.stations if s.kind in (StationKind.SPAWN, StationKind.EXTENSION) and s.active]

    def _record(self, agent_id: str, action: str, target: str, result: ActionResult) -> ActionResult:
        self.cpu += 0.2
        self.actions.append((agent_id, action, target, result))
        return result

    def _new_id(self, kind: str) -> str:
        self._next_id += 1
        return f"{kind}-{self._next_id}"
