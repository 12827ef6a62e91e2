"""
Unit tests for auction configuration.

Tests cover:
1. Defaults
2. Range validation
3. Environment overrides
4. .env file loading
"""

import pytest

from escrow_auction.core.config import AuctionConfig, config_from_mapping, load_config


class TestAuctionConfig:
    """Tests for the config dataclass."""

    def test_default_config(self):
        """Default config should match the documented economics."""
        config = AuctionConfig()
        assert config.starting_price == 1_000_000
        assert config.min_increment_pct == 5
        assert config.commission_pct == 2
        assert config.extension_window == 600
        assert config.extension == 600
        assert config.allow_force_finalize is False
        config.validate()

    @pytest.mark.parametrize("overrides", [
        {"starting_price": 0},
        {"commission_pct": -1},
        {"commission_pct": 101},
        {"min_increment_pct": 101},
        {"duration": 0},
        {"extension": -5},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            AuctionConfig(**overrides).validate()

    def test_to_dict(self):
        assert AuctionConfig().to_dict()["commission_pct"] == 2


class TestEnvironmentOverrides:
    """Tests for AUCTION_* variables."""

    def test_empty_mapping_gives_defaults(self):
        assert config_from_mapping({}) == AuctionConfig()

    def test_integer_and_bool_overrides(self):
        config = config_from_mapping({
            "AUCTION_COMMISSION_PCT": "3",
            "AUCTION_STARTING_PRICE": "2_000_000",
            "AUCTION_ALLOW_FORCE_FINALIZE": "yes",
            "UNRELATED": "ignored",
        })
        assert config.commission_pct == 3
        assert config.starting_price == 2_000_000
        assert config.allow_force_finalize is True

    def test_bad_integer(self):
        with pytest.raises(ValueError, match="AUCTION_DURATION"):
            config_from_mapping({"AUCTION_DURATION": "one day"})

    def test_bad_bool(self):
        with pytest.raises(ValueError, match="boolean"):
            config_from_mapping({"AUCTION_ALLOW_FORCE_FINALIZE": "maybe"})

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            config_from_mapping({"AUCTION_COMMISSION_PCT": "150"})

    def test_load_from_env_file(self, tmp_path, monkeypatch):
        # Registers the variable so teardown removes what load_dotenv sets
        monkeypatch.setenv("AUCTION_DURATION", "0")
        monkeypatch.delenv("AUCTION_DURATION")
        env_file = tmp_path / ".env"
        env_file.write_text("AUCTION_DURATION=3600\n")

        config = load_config(str(env_file))
        assert config.duration == 3600

    def test_environment_wins_over_env_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AUCTION_DURATION", "7200")
        env_file = tmp_path / ".env"
        env_file.write_text("AUCTION_DURATION=3600\n")

        assert load_config(str(env_file)).duration == 7200


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
