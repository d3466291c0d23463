from __future__ import annotations

from unittest.mock import patch

from dolimport.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch("dolimport.services.progress.is_tty_enabled", return_value=True), \
             patch("dolimport.services.progress.tqdm") as mock_tqdm:
            tracker = ProgressTracker(5, description="Test rows")
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Test rows",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch("dolimport.services.progress.is_tty_enabled", return_value=False):
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None
            tracker.advance()
            tracker.set_postfix(ok=1)
            tracker.close()
            assert tracker.current_row == 1

    def test_advance_counts_failures_and_updates_bar(self):
        with patch("dolimport.services.progress.is_tty_enabled", return_value=True), \
             patch("dolimport.services.progress.tqdm") as mock_tqdm:
            pbar = mock_tqdm.return_value
            with ProgressTracker(3) as tracker:
                tracker.advance(success=True)
                tracker.advance(success=False)
                tracker.set_postfix(ok=1, failed=1)
            assert tracker.current_row == 2
            assert tracker.failed_rows == 1
            assert pbar.update.call_count == 2
            pbar.set_postfix.assert_called_once_with(ok=1, failed=1)
            pbar.close.assert_called_once()
            assert tracker.pbar is None
