"""JSON log formatting."""

from __future__ import annotations

import json
import logging

from volunteer_auth.core.logger import JSONFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="volunteer_auth.services.auth.service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="auth.logout_all",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_whitelisted_extras():
    payload = json.loads(JSONFormatter().format(_record(user_id="u-1", revoked=3)))

    assert payload["message"] == "auth.logout_all"
    assert payload["level"] == "INFO"
    assert payload["user_id"] == "u-1"
    assert payload["revoked"] == 3


def test_drops_unknown_extras():
    payload = json.loads(JSONFormatter().format(_record(refresh_token="secret", user_id="u-1")))

    assert "refresh_token" not in payload
    assert "secret" not in json.dumps(payload)
