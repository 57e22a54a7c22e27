"""Tests for configuration."""

from pathlib import Path

import pytest

from eventfabric.config import (
    DEFAULT_DB_PATH,
    PROJECT_ROOT,
    FabricSettings,
    partner_bus_name_from_arn,
    resolve_db_path,
)
from eventfabric.errors import ConfigurationError

from conftest import PARTNER_ARN, PARTNER_BUS


class TestFromEnv:
    """Tests for FabricSettings.from_env."""

    def test_defaults(self):
        settings = FabricSettings.from_env({"STRIPE_PARTNER_EVENT_BUS_ARN": PARTNER_ARN})

        assert settings.partner_bus_name == PARTNER_BUS
        assert settings.internal_bus_name == "InternalEventBus"
        assert settings.processing_bus_name == "ProcessingEventBus"
        assert settings.queue_name == "StripeEventQueue"
        assert settings.visibility_timeout == 30.0
        assert settings.batch_size == 10
        assert settings.max_receive_count is None
        assert settings.rules_file is None

    def test_missing_arn(self):
        with pytest.raises(ConfigurationError, match="STRIPE_PARTNER_EVENT_BUS_ARN"):
            FabricSettings.from_env({})

    def test_blank_arn(self):
        with pytest.raises(ConfigurationError):
            FabricSettings.from_env({"STRIPE_PARTNER_EVENT_BUS_ARN": "  "})

    def test_overrides(self):
        settings = FabricSettings.from_env(
            {
                "STRIPE_PARTNER_EVENT_BUS_ARN": PARTNER_ARN,
                "STRIPE_EVENT_QUEUE_NAME": "Q",
                "QUEUE_VISIBILITY_TIMEOUT": "12.5",
                "QUEUE_MAX_RECEIVE_COUNT": "4",
                "DISPATCH_BATCH_SIZE": "3",
                "DISPATCH_WORKERS": "2",
                "FABRIC_RULES_FILE": "rules.json",
            }
        )

        assert settings.queue_name == "Q"
        assert settings.visibility_timeout == 12.5
        assert settings.max_receive_count == 4
        assert settings.batch_size == 3
        assert settings.workers == 2
        assert settings.rules_file == "rules.json"

    @pytest.mark.parametrize(
        "key,value",
        [
            ("QUEUE_VISIBILITY_TIMEOUT", "soon"),
            ("QUEUE_VISIBILITY_TIMEOUT", "0"),
            ("DISPATCH_BATCH_SIZE", "1.5"),
            ("DISPATCH_BATCH_SIZE", "11"),
            ("DISPATCH_WORKERS", "0"),
        ],
    )
    def test_invalid_values(self, key, value):
        with pytest.raises(ConfigurationError):
            FabricSettings.from_env(
                {"STRIPE_PARTNER_EVENT_BUS_ARN": PARTNER_ARN, key: value}
            )

    def test_duplicate_bus_names(self):
        with pytest.raises(ConfigurationError):
            FabricSettings.from_env(
                {
                    "STRIPE_PARTNER_EVENT_BUS_ARN": PARTNER_ARN,
                    "PROCESSING_EVENT_BUS_NAME": "InternalEventBus",
                }
            )


class TestPartnerBusName:
    """Tests for deriving the partner bus name."""

    def test_from_arn(self):
        assert partner_bus_name_from_arn(PARTNER_ARN) == PARTNER_BUS

    def test_plain_name(self):
        assert partner_bus_name_from_arn("MyPartnerBus") == "MyPartnerBus"

    def test_arn_without_name(self):
        with pytest.raises(ConfigurationError):
            partner_bus_name_from_arn("arn:aws:events:us-east-1:1:event-bus/")


class TestResolveDbPath:
    """Tests for DATABASE_URL resolution."""

    def test_default(self):
        assert resolve_db_path(None) == DEFAULT_DB_PATH

    def test_memory(self):
        assert resolve_db_path(":memory:") == ":memory:"

    def test_relative_path(self):
        assert resolve_db_path("03_data/x.db") == PROJECT_ROOT / "03_data/x.db"

    def test_absolute_path(self, tmp_path):
        path = tmp_path / "x.db"
        assert resolve_db_path(str(path)) == Path(path)
