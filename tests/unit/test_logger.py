"""
Unit tests for logging setup.
"""

import logging

import pytest

from escrow_auction.utils.logger import AuctionLogger, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging()


class TestLogger:
    """Tests for subsystem loggers."""

    def test_subsystem_namespace(self):
        assert get_logger("ledger").name == "escrow_auction.ledger"

    def test_setup_level(self):
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger("escrow_auction").level == logging.DEBUG

    def test_reconfigure_replaces_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("escrow_auction").handlers) == 1

    def test_file_logging(self, tmp_path):
        setup_logging(log_dir=str(tmp_path / "logs"), log_to_file=True)
        get_logger("test").warning("written to file")

        for handler in logging.getLogger("escrow_auction").handlers:
            handler.flush()
        assert "written to file" in (tmp_path / "logs" / "escrow_auction.log").read_text()
        assert AuctionLogger._log_dir == tmp_path / "logs"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
