"""Relay dispatch: push resource from node-side relays toward storage, else the controller."""

from __future__ import annotations

from typing import Optional

from .config import SchedulerConfig
from .debug_logger import DebugLogger
from .types import ActionResult, RelayRole, RelayView, ZoneView
from .world import WorldState


def pick_receiver(zone: ZoneView, config: SchedulerConfig) -> Optional[RelayView]:
    """Storage-side relay with room first, then controller-side."""
    for role in (RelayRole.STORAGE, RelayRole.CONTROLLER):
        for relay in zone.relays_of(role):
            if relay.store.free > config.relay_min_free:
                return relay
    return None


def dispatch_relays(world: WorldState, config: SchedulerConfig, debug_logger: Optional[DebugLogger] = None) -> int:
    """Fire every loaded node-side relay in owned zones. Returns the number of transfers accepted."""
    sent = 0
    for zone in world.zones():
        if not zone.is_mine:
            continue
        for relay in zone.relays_of(RelayRole.SOURCE):
            if relay.store.is_empty:
                continue
            receiver = pick_receiver(zone, config)
            if receiver is None:
                continue
            result = world.relay_transfer(relay.id, receiver.id)
            if result == ActionResult.OK:
                sent += 1
            elif debug_logger is not None and not result.is_transient:
                debug_logger.record_event(world.tick, "relay_rejected", f"{relay.id}->{receiver.id}: {result.value}")
    return sent
