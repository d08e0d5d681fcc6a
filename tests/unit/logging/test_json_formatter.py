import json
import logging

from orthotiler.logging import JSONFormatter


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.makeLogRecord(
        {
            "name": "orthotiler.tiling.manager",
            "levelname": "DEBUG",
            "levelno": logging.DEBUG,
            "msg": "wrote %s",
            "args": ("tile",),
            "tile": "3/4/5",
            "zoom": 3,
        }
    )

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "wrote tile"
    assert payload["logger"] == "orthotiler.tiling.manager"
    assert payload["level"] == "DEBUG"
    assert payload["tile"] == "3/4/5"
    assert payload["zoom"] == 3
    assert "args" not in payload
