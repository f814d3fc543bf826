from __future__ import annotations

from enum import Enum


class Archetype(Enum):
    WORKER = "worker"
    MELEE = "melee"
    CLAIMER = "claimer"
    SOURCE_HARVESTER = "source_harvester"
    UPGRADER = "upgrader"
    STORAGER = "storager"
    ATTACKER = "attacker"
    HEALER = "healer"


# Combat and healing units are not resource workers; they never count toward zone occupancy.
OCCUPANCY_EXEMPT_ARCHETYPES: frozenset[str] = frozenset(
    {
        Archetype.MELEE.value,
        Archetype.ATTACKER.value,
        Archetype.HEALER.value,
    }
)

# Archetype -> task type names it is allowed to take. Archetypes not listed take anything.
ARCHETYPE_TASK_PINS: dict[str, frozenset[str]] = {
    Archetype.SOURCE_HARVESTER.value: frozenset({"harvest"}),
    Archetype.UPGRADER.value: frozenset({"upgrade"}),
    Archetype.STORAGER.value: frozenset({"transfer", "withdraw"}),
}
