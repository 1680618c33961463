"""Tests for the synthetic event producer."""

import json
from unittest.mock import MagicMock, patch

import pytest
from kafka.errors import NoBrokersAvailable

from purchases.consumer.handler import KIND_DONATION, KIND_PURCHASE, KIND_UNKNOWN, classify, handle_message
from purchases.producer import producer as producer_module
from purchases.producer.data_factory import (
    build_donation_json,
    build_invalid_json,
    build_purchase_json,
    build_unknown_json,
)
from purchases.producer.producer import create_producer, pick_scenario, publish_once


class TestDataFactory:
    def test_purchase_is_consumable(self, repo, conn):
        msg = build_purchase_json()
        assert classify(msg) == KIND_PURCHASE
        assert handle_message(json.dumps(msg).encode(), repo)
        assert len(conn.tables["ticket_purchases"]) == 1

    def test_purchase_without_purchase_time(self):
        assert "purchase_time" not in build_purchase_json(with_purchase_time=False)

    def test_timestamps_are_rfc3339_utc(self):
        msg = build_purchase_json()
        assert msg["event_time"].endswith("Z")
        assert msg["purchase_time"].endswith("Z")

    def test_donation_is_consumable(self, repo, conn):
        msg = build_donation_json(token="u2", amount=100)
        assert classify(msg) == KIND_DONATION
        assert handle_message(json.dumps(msg).encode(), repo)
        assert conn.tables["donations"][0][0] == "u2"

    def test_tagged(self):
        assert build_purchase_json(tagged=True)["type"] == "purchase"
        assert build_donation_json(tagged=True)["type"] == "donation"

    @pytest.mark.parametrize("_", range(20))
    def test_invalid_is_dropped(self, repo, conn, _):
        assert handle_message(json.dumps(build_invalid_json()).encode(), repo) is False
        assert conn.tables == {"ticket_purchases": [], "donations": []}

    def test_unknown_shape(self):
        assert classify(build_unknown_json()) == KIND_UNKNOWN


class TestScenarios:
    @pytest.mark.parametrize("dice, expected", [
        (0.1, "purchase"),
        (0.6, "donation"),
        (0.85, "invalid"),
        (0.92, "unknown"),
        (0.97, "tagged"),
    ])
    def test_pick_scenario(self, dice, expected):
        name, msg = pick_scenario(dice)
        assert name == expected
        assert isinstance(msg, dict)

    def test_publish_once_sends_and_flushes(self):
        producer = MagicMock()
        scenario = publish_once(producer, "purchases")
        assert scenario in {"purchase", "donation", "invalid", "unknown", "tagged"}
        args, kwargs = producer.send.call_args
        assert args == ("purchases",)
        assert isinstance(kwargs["value"], dict)
        producer.flush.assert_called_once()


def test_create_producer_retries_until_broker_available():
    instance = MagicMock()
    with patch.object(producer_module, "KafkaProducer", side_effect=[NoBrokersAvailable(), instance]) as mock_cls, \
            patch.object(producer_module.time, "sleep") as mock_sleep:
        assert create_producer("broker:9092", retry_delay=0.5) is instance
    assert mock_cls.call_count == 2
    mock_sleep.assert_called_once_with(0.5)
