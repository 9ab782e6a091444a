from datetime import timedelta

from launcher.models.progress import ApplyReport, DownloadProgress, EntryFailure


class TestDownloadProgress:
    def test_sample_computes_rate_and_eta(self) -> None:
        progress = DownloadProgress.sample(500, 2000, 2.0)
        assert progress.instantaneous_rate == 250.0
        assert progress.elapsed == timedelta(seconds=2)
        assert progress.eta == timedelta(seconds=6)
        assert progress.fraction == 0.25

    def test_zero_elapsed_has_no_rate(self) -> None:
        progress = DownloadProgress.sample(100, 2000, 0.0)
        assert progress.instantaneous_rate == 0.0
        assert progress.eta == timedelta(0)

    def test_unknown_total(self) -> None:
        progress = DownloadProgress.sample(100, 0, 1.0)
        assert progress.eta == timedelta(0)
        assert progress.fraction == 0.0

    def test_overshoot_is_clamped(self) -> None:
        progress = DownloadProgress.sample(3000, 2000, 1.0)
        assert progress.eta == timedelta(0)
        assert progress.fraction == 1.0


def test_apply_report_failures() -> None:
    report = ApplyReport(entries_total=2, applied=["a"])
    assert not report.has_failures
    report.failed.append(EntryFailure("b.patch", "corrupt"))
    assert report.has_failures
    assert report.failed_names == ["b.patch"]
