"""
Population controller: sizes the roster against spawn goals and the energy budget.

For every spawner, at most one requisition per tick:
1. skip busy spawners, and spawners still refilling while their zone has enough workers
2. try goals in order; the first one below target that the spawner's zone can afford wins
3. build the loadout (base + affordable additive copies) and requisition it

Counts come from the live roster and are bumped on each accepted requisition,
so later spawners in the same tick see earlier requests.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Optional, Sequence

from colony_agents.policy.scripted_agent.common.roles import Archetype
from colony_agents.policy.scripted_agent.common.tag_utils import make_agent_name

from .config import PopulationConfig, SpawnGoal
from .debug_logger import DebugLogger
from .types import ActionResult, Capability, SpawnerView
from .world import WorldState


@dataclass
class SpawnRequest:
    spawner_id: str
    zone: str
    archetype: str
    name: str
    loadout: list[Capability]
    result: ActionResult

    @property
    def accepted(self) -> bool:
        return self.result == ActionResult.OK


class PopulationController:
    def __init__(self, config: Optional[PopulationConfig] = None, debug_logger: Optional[DebugLogger] = None) -> None:
        self.config = config or PopulationConfig()
        self._debug_logger = debug_logger

    def run(self, world: WorldState, goals: Sequence[SpawnGoal]) -> list[SpawnRequest]:
        counts: dict[str, Counter[str]] = defaultdict(Counter)
        for agent in world.agents():
            counts[agent.zone][agent.archetype] += 1

        node_counts = {zone.name: len(zone.resource_nodes) for zone in world.zones()}
        requests: list[SpawnRequest] = []
        accepted = 0

        for spawner in world.spawners():
            if not self._is_eligible(spawner, counts):
                continue
            energy = world.energy_available(spawner.zone)
            for goal in goals:
                if not goal.applies_to(spawner.zone):
                    continue
                current = _current_count(goal, spawner.zone, counts)
                if current >= goal.target_for(node_counts.get(spawner.zone, 0)):
                    continue
                if energy < goal.base_cost():
                    continue

                loadout = goal.build_loadout(energy)
                name = make_agent_name(goal.archetype, world.tick, accepted)
                result = world.spawn(spawner.id, name, loadout)
                requests.append(SpawnRequest(spawner.id, spawner.zone, goal.archetype, name, loadout, result))
                if result == ActionResult.OK:
                    accepted += 1
                    counts[spawner.zone][goal.archetype] += 1
                    if self._debug_logger is not None:
                        self._debug_logger.record_spawn(goal.archetype)
                elif self._debug_logger is not None:
                    detail = f"{name} at {spawner.id}: {result.value}"
                    self._debug_logger.record_event(world.tick, "spawn_rejected", detail)
                break
        return requests

    def _is_eligible(self, spawner: SpawnerView, counts: dict[str, Counter[str]]) -> bool:
        if spawner.busy:
            return False
        guard = counts[spawner.zone][self.config.refill_guard_archetype]
        return not (spawner.store.free > 0 and guard >= self.config.refill_guard_count)


def _current_count(goal: SpawnGoal, zone: str, counts: dict[str, Counter[str]]) -> int:
    if goal.is_global:
        return sum(zone_counts[goal.archetype] for zone_counts in counts.values())
    return counts[zone][goal.archetype]


# ---------------------------------------------------------------------------
# Default goals
# ---------------------------------------------------------------------------

WORKER_LOADOUT = [Capability.WORK, Capability.CARRY, Capability.MOVE, Capability.MOVE]
WORKER_ADDITION = [Capability.WORK, Capability.CARRY, Capability.MOVE]
MELEE_LOADOUT = [Capability.MOVE, Capability.ATTACK, Capability.ATTACK]
CLAIMER_LOADOUT = [Capability.CLAIM, Capability.MOVE]


def default_spawn_goals(pending_claims: int = 0) -> list[SpawnGoal]:
    """Standing colony goals. A claimer is only wanted while a claim directive is pending."""
    return [
        SpawnGoal(
            archetype=Archetype.WORKER.value,
            loadout=WORKER_LOADOUT,
            additive_loadout=WORKER_ADDITION,
            max_additions=5,
            count=4,
            node_scaling=1,
        ),
        SpawnGoal(archetype=Archetype.MELEE.value, loadout=MELEE_LOADOUT, count=2),
        SpawnGoal(
            archetype=Archetype.CLAIMER.value,
            loadout=CLAIMER_LOADOUT,
            count=1 if pending_claims > 0 else 0,
            is_global=True,
        ),
    ]
