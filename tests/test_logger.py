"""Test logging setup and the check report"""

import logging

import pytest

from spot_updater.core.logger import (
    CheckReportHandler,
    ErrorOnlyFilter,
    log_new_releases,
    log_unresolved_playlist,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def report(temp_dir):
    handler = CheckReportHandler(temp_dir / "check_report.log")
    handler.open()
    logger = logging.getLogger("spot_updater.tests.report")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)
    handler.close()


class TestCheckReport:
    """Test CheckReportHandler"""

    def test_new_releases_entry(self, report):
        """Test a new-releases record is written with its track lines"""
        logger, handler = report

        log_new_releases(logger, "Artist Essentials", "p1", ["2024-03-01  Album - Song [3:21]"])
        handler.close()

        assert handler.report_path.read_text(encoding="utf-8") == (
            "Artist Essentials\n"
            "https://open.spotify.com/playlist/p1\n"
            "  2024-03-01  Album - Song [3:21]\n"
            "\n"
        )

    def test_unresolved_entry(self, report):
        logger, handler = report

        log_unresolved_playlist(logger, "Mix", "p2", "Could not identify main artist.")
        handler.close()

        content = handler.report_path.read_text(encoding="utf-8")
        assert "Mix\nhttps://open.spotify.com/playlist/p2\n" in content
        assert "  Could not identify main artist." in content

    def test_ordinary_records_are_ignored(self, report):
        """Test records without report fields never reach the report"""
        logger, handler = report

        logger.info("Hard refresh of playlist:p1")
        handler.close()

        assert handler.report_path.read_text(encoding="utf-8") == ""


class TestSetupLogging:
    """Test setup_logging and shutdown_logging"""

    def test_creates_log_files(self, temp_dir):
        logs_dir = temp_dir / "logs"
        try:
            setup_logging(logs_dir)
            logging.getLogger("spot_updater.tests").error("Something failed")
        finally:
            shutdown_logging()

        names = sorted(path.name.split("_")[0] + "_" + path.name.split("_")[1] for path in logs_dir.iterdir())
        assert names == ["check_report", "log_errors", "log_full"]
        errors = next(logs_dir.glob("log_errors_*.log")).read_text(encoding="utf-8")
        assert "Something failed" in errors
        assert logging.getLogger().handlers == []

    def test_error_only_filter(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg", None, None)

        assert not ErrorOnlyFilter().filter(record)
        record.levelno = logging.ERROR
        assert ErrorOnlyFilter().filter(record)
