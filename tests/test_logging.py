import json
import logging

from starlette.requests import Request

from gateway.logging_config import JSONFormatter, RequestLoggingMiddleware

SERVICE = "gateway-test"


async def _app(scope, receive, send):
    pass


def _request():
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/api/v1/payments",
            "query_string": b"",
            "headers": [(b"x-api-key", b"key_live"), (b"x-api-secret", b"s3cret"), (b"accept", b"*/*")],
        }
    )


def test_headers_are_not_logged_at_info(caplog):
    caplog.set_level(logging.INFO, logger=SERVICE)
    RequestLoggingMiddleware(_app, service_name=SERVICE).log_request(_request(), 201, 3.2, "req-1")

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["Request processed"]
    assert caplog.records[0].status_code == 201


def test_debug_header_dump_masks_credentials(caplog):
    caplog.set_level(logging.DEBUG, logger=SERVICE)
    RequestLoggingMiddleware(_app, service_name=SERVICE).log_request(_request(), 200, 1.0, "req-2")

    dump = [record.getMessage() for record in caplog.records if record.getMessage().startswith("Request headers")]
    assert len(dump) == 1
    assert "s3cret" not in dump[0]
    assert "key_live" not in dump[0]
    assert "*/*" in dump[0]


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("gateway.jobs", logging.WARNING, __file__, 1, "Job failed", None, None)
    record.queue = "payments"
    record.entity_id = "pay_1"
    line = json.loads(JSONFormatter(SERVICE).format(record))
    assert line["service"] == SERVICE
    assert line["level"] == "WARNING"
    assert line["queue"] == "payments"
    assert line["entity_id"] == "pay_1"
    assert "request_id" not in line
