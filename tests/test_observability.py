# tests/test_observability.py
import json
import logging

import pytest

from app.core.logging import JsonFormatter, bind_request_id, reset_request_id


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "app.promotions", "levelno": logging.INFO, "levelname": "INFO", "msg": message})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_nests_extra_fields():
    line = JsonFormatter().format(_record("Promotion created", promotion_id="abc", type="PERCENTAGE"))
    payload = json.loads(line)
    assert payload["message"] == "Promotion created"
    assert payload["logger"] == "app.promotions"
    assert payload["extra"] == {"promotion_id": "abc", "type": "PERCENTAGE"}
    assert "request_id" not in payload


def test_json_formatter_adds_bound_request_id():
    token = bind_request_id("req-42")
    try:
        payload = json.loads(JsonFormatter().format(_record("Promotion updated")))
    finally:
        reset_request_id(token)
    assert payload["request_id"] == "req-42"


@pytest.mark.asyncio
async def test_health_echoes_request_id(client):
    resp = await client.get("/health", headers={"x-request-id": "abc123"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["x-request-id"] == "abc123"


@pytest.mark.asyncio
async def test_request_id_generated_when_missing(client):
    resp = await client.get("/health")
    assert len(resp.headers["x-request-id"]) == 32


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_request_counters(client):
    await client.get("/health")
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "pos_http_requests_total" in resp.text


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client):
    resp = await client.get("/api/v1/nowhere")
    assert resp.status_code == 404
    assert resp.json()["status"] == "error"
