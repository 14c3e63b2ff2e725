"""
Property-based tests for status aggregation.

**Feature: forum-crawler, Property 2: Aggregate counters are monotone and exact**
"""

import io
import threading
from datetime import datetime

from hypothesis import given, strategies as st

from forum_crawler.concurrent.models import CrawlRunResult, StatusEvent, TargetResult, WorkerState
from forum_crawler.concurrent.monitoring import (
    ConsoleDashboard,
    DashboardRenderer,
    StatusAggregator,
    format_summary
)


@st.composite
def status_event_strategy(draw):
    return StatusEvent(
        worker_id=draw(st.integers(min_value=1, max_value=4)),
        state=draw(st.one_of(st.none(), st.sampled_from(list(WorkerState)))),
        message=draw(st.one_of(st.none(), st.text(max_size=20))),
        stats_delta=draw(st.fixed_dictionaries({}, optional={
            "new_relevant_found": st.integers(min_value=-3, max_value=5),
            "targets_completed": st.integers(min_value=-1, max_value=1),
        }))
    )


class TestStatusAggregatorProperties:

    @given(events=st.lists(status_event_strategy(), max_size=40))
    def test_counters_never_decrease(self, events):
        """Test aggregate counters never decrease."""
        aggregator = StatusAggregator([1, 2, 3, 4], total_targets=10)
        previous = aggregator.snapshot()

        for event in events:
            aggregator.apply(event)
            current = aggregator.snapshot()
            assert current.completed_targets >= previous.completed_targets
            assert current.total_relevant_found >= previous.total_relevant_found
            previous = current

        expected_relevant = sum(max(0, e.stats_delta.get("new_relevant_found", 0)) for e in events)
        expected_completed = sum(max(0, e.stats_delta.get("targets_completed", 0)) for e in events)
        assert previous.total_relevant_found == expected_relevant
        assert previous.completed_targets == expected_completed

    @given(events=st.lists(status_event_strategy(), max_size=40))
    def test_terminal_state_is_sticky(self, events):
        """Test a terminal worker state is never left."""
        aggregator = StatusAggregator([1], total_targets=1)
        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.ERROR, message="dead"))

        for event in events:
            if event.worker_id == 1:
                aggregator.apply(event)

        assert aggregator.snapshot().workers[0].state.is_terminal


class TestStatusAggregator:

    def test_starting_resets_per_target_relevant_count(self):
        """Test STARTING resets the per-target relevant count."""
        aggregator = StatusAggregator([1], total_targets=2)

        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.STARTING, source_name="A"))
        aggregator.apply(StatusEvent(worker_id=1, stats_delta={"new_relevant_found": 3}))
        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.STARTING, source_name="B"))

        snapshot = aggregator.snapshot()
        worker = snapshot.workers[0]
        assert worker.source_name == "B"
        assert worker.relevant_count == 0
        assert snapshot.total_relevant_found == 3

    def test_none_fields_leave_values_untouched(self):
        """Test None fields in an event leave values unchanged."""
        aggregator = StatusAggregator([1], total_targets=1)

        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.SCRAPING, message="Navigating to Page 1"))
        aggregator.apply(StatusEvent(worker_id=1, stats_delta={"new_relevant_found": 1}))

        worker = aggregator.snapshot().workers[0]
        assert worker.state == WorkerState.SCRAPING
        assert worker.message == "Navigating to Page 1"

    def test_consumer_thread_applies_events_from_many_threads(self):
        """Test the consumer applies events posted from many threads."""
        aggregator = StatusAggregator([1, 2, 3, 4], total_targets=100)
        aggregator.start()

        def producer(worker_id):
            for _ in range(250):
                aggregator.post(StatusEvent(worker_id=worker_id, stats_delta={"new_relevant_found": 1}))

        threads = [threading.Thread(target=producer, args=(i,)) for i in (1, 2, 3, 4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        aggregator.stop()

        snapshot = aggregator.snapshot()
        assert snapshot.total_relevant_found == 1000
        assert [w.relevant_count for w in snapshot.workers] == [250, 250, 250, 250]
        assert aggregator.events_applied == 1000

    def test_snapshot_is_a_copy(self):
        """Test snapshots are independent copies."""
        aggregator = StatusAggregator([1], total_targets=1)
        snapshot = aggregator.snapshot()

        snapshot.workers[0].message = "changed"

        assert aggregator.snapshot().workers[0].message == "Waiting for a task..."

    def test_all_workers_terminal(self):
        """Test all_workers_terminal reflects worker states."""
        aggregator = StatusAggregator([1, 2], total_targets=0)
        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.FINISHED))
        assert not aggregator.snapshot().all_workers_terminal()

        aggregator.apply(StatusEvent(worker_id=2, state=WorkerState.ERROR))
        assert aggregator.snapshot().all_workers_terminal()


class TestDashboard:

    def test_format_lists_every_worker(self):
        """Test the dashboard lists every worker."""
        aggregator = StatusAggregator([1, 2], total_targets=6)
        aggregator.apply(StatusEvent(
            worker_id=1, state=WorkerState.SCRAPING, source_name="Car Forum", message="Navigating to Page 2"
        ))
        aggregator.apply(StatusEvent(worker_id=2, stats_delta={"targets_completed": 1, "new_relevant_found": 4}))

        text = ConsoleDashboard(use_color=False).format(aggregator.snapshot())

        lines = text.splitlines()
        assert lines[0] == "--- Multithreaded Scraper Dashboard ---"
        assert lines[1] == "Progress: 1 / 6 targets processed | Total Relevant Found: 4"
        assert "[Worker 1]  (Car Forum)          [SCRAPING]   Navigating to Page 2" in lines
        assert "[Worker 2]  (Idle)               [IDLE]       Waiting for a task..." in lines
        assert lines[-1] == "(Press Ctrl+C to stop)"

    def test_shutdown_hint(self):
        """Test the dashboard shows the shutdown hint."""
        dashboard = ConsoleDashboard(use_color=False)
        dashboard.shutting_down = True

        text = dashboard.format(StatusAggregator([1], 0).snapshot())

        assert "press Ctrl+C again to force exit" in text

    def test_colors_follow_state(self):
        """Test worker colours follow their state."""
        aggregator = StatusAggregator([1, 2], total_targets=0)
        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.FINISHED))
        aggregator.apply(StatusEvent(worker_id=2, state=WorkerState.ERROR))

        text = ConsoleDashboard(use_color=True).format(aggregator.snapshot())

        assert "\x1b[32m[FINISHED]" in text
        assert "\x1b[31m[ERROR]" in text

    def test_renderer_draws_final_frame_on_stop(self):
        """Test the renderer draws a final frame on stop."""
        stream = io.StringIO()
        aggregator = StatusAggregator([1], total_targets=1)
        renderer = DashboardRenderer(aggregator, ConsoleDashboard(stream=stream, use_color=False), interval=0.01)

        renderer.start()
        aggregator.apply(StatusEvent(worker_id=1, state=WorkerState.FINISHED, message="All tasks complete."))
        renderer.stop(final_render=True)

        assert renderer.frames_rendered >= 1
        assert stream.getvalue().rstrip().split("\x1b[2J\x1b[H")[-1].count("All tasks complete.") == 1

    def test_summary_mentions_targets_and_failures(self):
        """Test the summary reports targets and failed workers."""
        aggregator = StatusAggregator([1, 2], total_targets=2)
        aggregator.apply(StatusEvent(worker_id=2, state=WorkerState.ERROR, message="Critical error: crashed"))
        result = CrawlRunResult(
            total_targets=2,
            completed_targets=2,
            total_relevant_found=5,
            worker_stats=aggregator.snapshot().workers,
            started_at=datetime.now(),
            completed_at=datetime.now(),
            target_results=[
                TargetResult("Car Forum", 1, pages_processed=3, threads_seen=30, relevant_found=5),
                TargetResult("Bike Board", 2, error_message="Page 1 failed: timeout"),
            ]
        )

        summary = format_summary(result)

        assert "Targets processed: 2/2" in summary
        assert "Relevant threads found: 5" in summary
        assert "Car Forum: 3 pages, 30 threads, 5 relevant" in summary
        assert "(Page 1 failed: timeout)" in summary
        assert "Worker 2: Critical error: crashed" in summary
