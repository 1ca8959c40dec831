"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

import pytest
from membertx.core.logger import TX_LOGGER, JSONFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(TX_LOGGER, logging.DEBUG, __file__, 1, "tx.begin", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert logging.getLogger().level == logging.DEBUG
    configure_logging("WARNING")


def test_configure_logging_tunes_transaction_layer_separately() -> None:
    configure_logging("WARNING", tx_level="DEBUG")

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger(TX_LOGGER).getEffectiveLevel() == logging.DEBUG
    configure_logging("WARNING")
    assert logging.getLogger(TX_LOGGER).getEffectiveLevel() == logging.WARNING


def test_configure_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        configure_logging("CHATTY")


def test_json_formatter_groups_transaction_extras() -> None:
    """Transaction attributes passed via ``extra`` end up under ``tx``."""

    payload = json.loads(
        JSONFormatter().format(
            _record(tx_id="abc123", unit="MemberService.join", propagation="required")
        )
    )

    assert payload["message"] == "tx.begin"
    assert payload["tx"] == {
        "id": "abc123",
        "unit": "MemberService.join",
        "propagation": "required",
    }


def test_json_formatter_omits_tx_for_plain_records() -> None:
    payload = json.loads(JSONFormatter().format(_record(scenario="single_tx")))

    assert "tx" not in payload
    assert payload["scenario"] == "single_tx"
