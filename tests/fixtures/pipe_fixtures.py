"""Fixtures for pipe specifications in their camelCase wire form."""

import pytest


@pytest.fixture
def json_pipe_payload():
    """A minimal valid JSON-records pipe."""
    return {
        "name": "Orders",
        "description": "Order events",
        "storagePath": "/orders",
        "filePattern": {"extensions": ["json"]},
        "recordBoundary": {"type": "json"},
        "output": {"tableName": "orders"},
    }


@pytest.fixture
def log_pipe_payload():
    """A text pipe with a three-group regex extraction."""
    return {
        "name": "App Logs",
        "storagePath": "/app_logs",
        "filePattern": {"extensions": ["log"]},
        "recordBoundary": {
            "type": "text",
            "fieldExtraction": {
                "method": "regex",
                "pattern": r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) \[(\w+)\] (.*)",
                "fieldNames": ["timestamp", "level", "message"],
            },
        },
        "schema": {
            "inferFromData": False,
            "columns": [
                {"name": "timestamp", "type": "timestamp", "nullable": False},
                {"name": "level", "type": "string"},
                {"name": "message", "type": "string"},
            ],
        },
        "partitioning": {"enabled": True, "keys": [{"column": "timestamp", "transform": "day"}]},
        "output": {"tableName": "app_logs", "namespace": "ops", "writeMode": "append"},
    }
