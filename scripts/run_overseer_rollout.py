#!/usr/bin/env python
"""Run a short Overseer rollout in the sandbox world and sanity-check scheduling and population."""

from __future__ import annotations

import argparse
from collections import Counter

import numpy as np

from colony_agents.policy.scripted_agent.overseer.policy import OverseerPolicy
from colony_agents.policy.scripted_agent.overseer.sandbox import SandboxWorld
from colony_agents.policy.scripted_agent.overseer.types import Capability, RelayRole, StationKind
from colony_agents.policy.scripted_registry import parse_policy_uri

HOME = "W1N1"
STARTER_LOADOUT = (Capability.WORK, Capability.CARRY, Capability.MOVE, Capability.MOVE)


def build_world(*, seed: int, nodes: int, starters: int, hostiles: int, claim: str | None) -> SandboxWorld:
    """A home zone with a spawn, a few extensions and randomly placed nodes."""
    rng = np.random.default_rng(seed)
    world = SandboxWorld(tick=1)
    world.add_zone(HOME, controller_level=2)
    world.add_station(HOME, StationKind.SPAWN, 25, 25, capacity=300, used=300)
    for i in range(3):
        world.add_station(HOME, StationKind.EXTENSION, 22 + i, 27, capacity=50)
    world.add_station(HOME, StationKind.STORAGE, 30, 22, capacity=10_000)
    world.add_relay(HOME, RelayRole.STORAGE, 31, 23)

    for x, y in rng.integers(3, 47, size=(nodes, 2)):
        node = world.add_node(HOME, int(x), int(y))
        world.add_relay(HOME, RelayRole.SOURCE, node.position.x + 1, node.position.y)
    for i in range(starters):
        world.add_agent(f"worker-0-{i}", HOME, 24 + i, 26, STARTER_LOADOUT)
    for x, y in rng.integers(3, 47, size=(hostiles, 2)):
        world.add_hostile(HOME, int(x), int(y), hits=300)
    if claim:
        world.add_zone(claim, owned=False)
        world.add_directive(f"claim:{claim}", HOME)
    return world


def run_rollout(
    *,
    ticks: int,
    seed: int,
    policy_uri: str,
    nodes: int,
    starters: int,
    hostiles: int,
    claim: str | None,
    allow_idle: bool,
) -> int:
    _, params = parse_policy_uri(policy_uri)
    policy = OverseerPolicy(**params)
    world = build_world(seed=seed, nodes=nodes, starters=starters, hostiles=hostiles, claim=claim)

    completed = 0
    switched = 0
    relay_transfers = 0
    cancelled: Counter[str] = Counter()
    spawned: Counter[str] = Counter()
    errors: list[str] = []
    peak_active = 0

    for report in world.run(policy, ticks):
        if report is None:
            break
        completed += len(report.completed)
        switched += len(report.switched)
        relay_transfers += report.relay_transfers
        cancelled.update(reason.value for reason in report.cancelled.values())
        spawned.update(name.split("-", 1)[0] for name in report.spawned)
        errors.extend(f"t={report.tick} {agent}: {err}" for agent, err in report.errors.items())
        peak_active = max(peak_active, len(report.active))
    policy.end_run()

    zone = world.get_zone(HOME)
    roster = Counter(agent.archetype for agent in world.agents())
    print("Overseer rollout sanity check")
    print(f"- ticks: {ticks}")
    print(f"- roster: {dict(sorted(roster.items()))}")
    print(f"- spawned: {dict(sorted(spawned.items()))}")
    print(f"- peak active: {peak_active}")
    print(f"- completed={completed} switched={switched} relay_transfers={relay_transfers}")
    print(f"- cancelled: {dict(sorted(cancelled.items()))}")
    print(f"- controller progress: {zone.controller.progress}")
    print(f"- hostiles left: {len(zone.hostiles)}")
    if claim:
        target = world.get_zone(claim)
        print(f"- {claim} owned: {target.controller.owned}")
    if errors:
        print("Step errors")
        for line in errors:
            print(f"- {line}")

    if errors:
        return 1
    if not allow_idle and (completed == 0 or not spawned):
        return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--ticks", type=int, default=300)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--policy-uri", default="colony://policy/overseer")
    parser.add_argument("--nodes", type=int, default=2)
    parser.add_argument("--starters", type=int, default=2)
    parser.add_argument("--hostiles", type=int, default=0)
    parser.add_argument("--claim", default=None, help="Zone to place a claim directive on")
    parser.add_argument("--allow-idle", action="store_true")
    args = parser.parse_args()

    return run_rollout(
        ticks=args.ticks,
        seed=args.seed,
        policy_uri=args.policy_uri,
        nodes=args.nodes,
        starters=args.starters,
        hostiles=args.hostiles,
        claim=args.claim,
        allow_idle=args.allow_idle,
    )


if __name__ == "__main__":
    raise SystemExit(main())
