from __future__ import annotations

import io
import json

from colony_agents.policy.scripted_agent.common.geometry import Position
from colony_agents.policy.scripted_agent.overseer.debug_logger import DebugLogger, TickSummary


def _lines(output: io.StringIO) -> list[str]:
    return output.getvalue().splitlines()


class TestFlushTick:
    def test_level_one_prints_counts(self) -> None:
        output = io.StringIO()
        logger = DebugLogger(level=1, output=output)
        logger.record_tick(TickSummary(tick=7, active=3, idle=1, assigned=2, completed=1, cancelled=1))
        logger.record_spawn("worker")
        logger.record_event(7, "spawn_rejected", "worker-7-1 at spawn-1: busy")

        logger.flush_tick()

        assert _lines(output) == [
            "[overseer:debug] t=7 active=3 idle=1 +2 done=1 cancel=1 switch=0 spawn=1",
        ]

    def test_level_two_adds_agents_events_and_cpu(self) -> None:
        output = io.StringIO()
        logger = DebugLogger(level=2, output=output)
        logger.record_tick(TickSummary(tick=4))
        logger.record_agent_tick("worker-0-1", "worker", Position("W1N1", 3, 4), "Harvest at (3, 3) in W1N1")
        logger.record_agent_tick(
            "melee-0-0", "melee", Position("W1N1", 9, 9), "idle", energy=0, ticks_to_live=1200
        )
        logger.record_event(4, "directive_removed", "claim:: no zone named")
        logger.record_cpu(4, "assign", 1.25)

        logger.flush_tick()

        lines = _lines(output)
        assert lines[1] == "[overseer:debug]   a=melee-0-0 melee (9,9)@W1N1 e=0 ttl=1200 task=idle list="
        assert lines[2].startswith("[overseer:debug]   a=worker-0-1 worker (3,4)@W1N1 e=0 task=Harvest")
        assert lines[3] == "[overseer:debug]   event directive_removed: claim:: no zone named"
        assert lines[4] == "[overseer:debug]   cpu assign=1.25"

    def test_nothing_recorded_means_no_output(self) -> None:
        output = io.StringIO()
        DebugLogger(level=2, output=output).flush_tick()
        assert output.getvalue() == ""

    def test_accumulators_clear_after_flush(self) -> None:
        output = io.StringIO()
        logger = DebugLogger(level=2, output=output)
        logger.record_tick(TickSummary(tick=1))
        logger.record_event(1, "step_error", "boom")
        logger.flush_tick()
        logger.record_tick(TickSummary(tick=2))
        logger.flush_tick()

        assert sum("step_error" in line for line in _lines(output)) == 1


class TestRunSummary:
    def _summary(self, output: io.StringIO) -> dict:
        [line] = [ln for ln in _lines(output) if ln.startswith("[overseer:debug:summary] ")]
        return json.loads(line.split(" ", 1)[1])

    def test_summary_aggregates_the_run(self) -> None:
        output = io.StringIO()
        logger = DebugLogger(level=1, output=output)
        for tick in range(3):
            logger.record_tick(TickSummary(tick=tick, assigned=1))
            logger.record_cancel("expired")
            logger.flush_tick()
        logger.record_spawn("claimer")
        logger.record_event(2, "relay_rejected", "relay-1->relay-2: full")

        logger.emit_run_summary(run=5)

        summary = self._summary(output)
        assert summary["run"] == 5
        assert summary["total_ticks"] == 3
        assert [t["tick"] for t in summary["timeline"]] == [0, 1, 2]
        assert summary["cancel_reasons"] == {"expired": 3}
        assert summary["spawned"] == {"claimer": 1}
        assert summary["events"] == {"relay_rejected": 1}

    def test_reset_run_starts_fresh(self) -> None:
        output = io.StringIO()
        logger = DebugLogger(level=1, output=output)
        logger.record_tick(TickSummary(tick=1))
        logger.record_cancel("move_failed")
        logger.flush_tick()
        logger.reset_run()

        logger.emit_run_summary()

        summary = self._summary(output)
        assert summary["total_ticks"] == 0
        assert summary["cancel_reasons"] == {}
