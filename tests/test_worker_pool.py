import threading
import time

import pytest

from lead_enricher.utils.worker_pool import run_in_windows


class TestRunInWindows:
    def test_results_in_input_order(self):
        def work(n):
            time.sleep(0.01 * (5 - n))
            return n * 10

        settled = run_in_windows([1, 2, 3, 4, 5], work, window_size=3)

        assert [s.value for s in settled] == [10, 20, 30, 40, 50]
        assert all(s.ok for s in settled)

    def test_failure_does_not_cancel_siblings(self):
        def work(n):
            if n == 3:
                raise RuntimeError("boom")
            return n

        settled = run_in_windows([1, 2, 3, 4, 5], work, window_size=2)

        assert [s.item for s in settled if s.ok] == [1, 2, 4, 5]
        failed = [s for s in settled if not s.ok]
        assert len(failed) == 1
        assert str(failed[0].error) == "boom"

    def test_window_bounds_concurrency(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def work(n):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with lock:
                active -= 1
            return n

        run_in_windows(list(range(7)), work, window_size=3)

        assert peak <= 3

    def test_next_window_waits_for_current(self):
        finished = []

        def work(n):
            time.sleep(0.05 if n == 0 else 0.001)
            finished.append(n)
            return n

        run_in_windows([0, 1, 2], work, window_size=2)

        # Item 2 is in the second window, so it starts after the slow item 0
        assert finished.index(2) > finished.index(0)

    def test_empty_input(self):
        assert run_in_windows([], lambda n: n) == []

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            run_in_windows([1], lambda n: n, window_size=0)
