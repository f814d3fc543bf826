"""
Types and constants for the Overseer policy.

Enums for capabilities, action results and task tags, plus the read-only
descriptors the world supplies every tick.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from colony_agents.policy.scripted_agent.common.geometry import Position
from colony_agents.policy.scripted_agent.common.tag_utils import archetype_from_name


class Capability(Enum):
    """Capability units an agent is built from. Fixed at creation."""

    MOVE = "move"
    WORK = "work"
    CARRY = "carry"
    ATTACK = "attack"
    RANGED_ATTACK = "ranged_attack"
    HEAL = "heal"
    CLAIM = "claim"
    TOUGH = "tough"


# Construction cost of one capability unit
CAPABILITY_COST: dict[Capability, int] = {
    Capability.MOVE: 50,
    Capability.WORK: 100,
    Capability.CARRY: 50,
    Capability.ATTACK: 80,
    Capability.RANGED_ATTACK: 150,
    Capability.HEAL: 250,
    Capability.CLAIM: 600,
    Capability.TOUGH: 10,
}


def loadout_cost(loadout: list[Capability]) -> int:
    return sum(CAPABILITY_COST[c] for c in loadout)


class ActionResult(Enum):
    """Result code of a world action primitive."""

    OK = "ok"
    NOT_IN_RANGE = "not_in_range"
    TIRED = "tired"  # Exhausted for this tick
    BUSY = "busy"  # Still being built / not yet ready
    FULL = "full"
    NOT_ENOUGH_RESOURCES = "not_enough_resources"
    INVALID_TARGET = "invalid_target"
    NOT_OWNER = "not_owner"
    NO_PATH = "no_path"
    NAME_EXISTS = "name_exists"
    ERROR = "error"

    @property
    def is_transient(self) -> bool:
        return self in (ActionResult.TIRED, ActionResult.BUSY)


class TaskType(Enum):
    ATTACK = "attack"
    BUILD = "build"
    CLAIM = "claim"
    HARVEST = "harvest"
    HEAL = "heal"
    IDLE = "idle"
    IDLE_UNTIL = "idle_until"
    REPAIR = "repair"
    TRANSFER = "transfer"
    TRAVEL = "travel"
    UPGRADE = "upgrade"
    WITHDRAW = "withdraw"


class CancelReason(Enum):
    TARGET_GONE = "target_gone"
    ACTION_REJECTED = "action_rejected"
    EXPIRED = "expired"
    MOVE_FAILED = "move_failed"
    ERROR = "error"  # Step raised; logged by the scheduler


class StationKind(Enum):
    SPAWN = "spawn"
    EXTENSION = "extension"
    TOWER = "tower"
    STORAGE = "storage"


class RelayRole(Enum):
    """Which endpoint a relay serves. Classified outside the policy."""

    SOURCE = "source"
    STORAGE = "storage"
    CONTROLLER = "controller"
    UNKNOWN = "unknown"


class StructureKind(Enum):
    WALL = "wall"
    ROAD = "road"
    RAMPART = "rampart"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass
class Store:
    used: int = 0
    capacity: int = 0

    @property
    def free(self) -> int:
        return max(0, self.capacity - self.used)

    @property
    def is_empty(self) -> bool:
        return self.used <= 0

    @property
    def is_full(self) -> bool:
        return self.used >= self.capacity


@dataclass
class AgentView:
    """A controllable mobile unit."""

    id: str
    name: str
    position: Position
    loadout: tuple[Capability, ...]
    store: Store = field(default_factory=Store)
    ticks_to_live: Optional[int] = None  # None while still being built
    hits: int = 100
    hits_max: int = 100

    @property
    def capabilities(self) -> frozenset[Capability]:
        return frozenset(self.loadout)

    @property
    def archetype(self) -> str:
        return archetype_from_name(self.name)

    @property
    def zone(self) -> str:
        return self.position.zone

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def count(self, capability: Capability) -> int:
        return self.loadout.count(capability)


@dataclass
class HostileView:
    id: str
    position: Position
    hits: int
    hits_max: int


@dataclass
class ControllerView:
    id: str
    position: Position
    owned: bool = False
    reserved: bool = False  # Owned or reserved by anyone else
    level: int = 0
    ticks_to_downgrade: int = 0
    active: bool = True
    progress: int = 0
    progress_total: int = 0


@dataclass
class StationView:
    id: str
    kind: StationKind
    position: Position
    store: Store
    active: bool = True
    owned: bool = True


@dataclass
class ResourceNodeView:
    id: str
    position: Position
    energy: int
    energy_capacity: int
    slots: int = 8  # Walkable tiles adjacent to the node


@dataclass
class RelayView:
    id: str
    position: Position
    store: Store
    role: RelayRole = RelayRole.UNKNOWN


@dataclass
class StructureView:
    """A damageable structure. Only repair candidate generation looks at these."""

    id: str
    kind: StructureKind
    position: Position
    hits: int
    hits_max: int


@dataclass
class ConstructionSiteView:
    id: str
    position: Position
    progress: int = 0
    progress_total: int = 1


@dataclass
class DirectiveMarker:
    """Operator-placed point of interest, e.g. ``claim:W2N1`` or ``defend``."""

    name: str
    position: Position


@dataclass
class SpawnerView:
    """Construction source for new agents."""

    id: str
    zone: str
    store: Store
    busy: bool = False


@dataclass
class ZoneView:
    name: str
    controller: Optional[ControllerView] = None
    stations: list[StationView] = field(default_factory=list)
    resource_nodes: list[ResourceNodeView] = field(default_factory=list)
    relays: list[RelayView] = field(default_factory=list)
    structures: list[StructureView] = field(default_factory=list)
    construction_sites: list[ConstructionSiteView] = field(default_factory=list)
    hostiles: list[HostileView] = field(default_factory=list)

    @property
    def is_mine(self) -> bool:
        return self.controller is not None and self.controller.owned

    def stations_of(self, kind: StationKind) -> list[StationView]:
        return [s for s in self.stations if s.kind == kind]

    def relays_of(self, role: RelayRole) -> list[RelayView]:
        return [r for r in self.relays if r.role == role]

    def storage_with_energy(self) -> Optional[StationView]:
        """The last storage holding energy, if any."""
        found = None
        for storage in self.stations_of(StationKind.STORAGE):
            if storage.store.used > 0:
                found = storage
        return found
