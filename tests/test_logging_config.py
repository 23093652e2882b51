from __future__ import annotations

import json
import logging

from blocknotify.logging_config import log_json


def test_log_json_carries_event_and_logger(caplog) -> None:
    logger = logging.getLogger("blocknotify.listener")
    caplog.set_level(logging.INFO, logger="blocknotify.listener")
    log_json(logger, logging.INFO, "sequence_gap", topic="hashtx", expected=7, actual=8)

    (record,) = caplog.records
    assert record.levelno == logging.INFO
    assert json.loads(record.getMessage()) == {
        "event": "sequence_gap",
        "logger": "blocknotify.listener",
        "level": "INFO",
        "topic": "hashtx",
        "expected": 7,
        "actual": 8,
    }
