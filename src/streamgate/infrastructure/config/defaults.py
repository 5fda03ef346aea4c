"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "streamgate",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
    },
    "resolver": {
        "page_timeout_seconds": 15.0,
        "aux_timeout_seconds": 8.0,
        "max_iframes": 3,
        "max_scripts": 5,
        "exhaustive": False,
        "api_probes_enabled": True,
        "api_probe_concurrency": 3,
    },
    "proxy": {
        "path": "/proxy",
        "connect_timeout_seconds": 10.0,
        "max_buffered_bytes": 50 * 1024 * 1024,
    },
    "cache": {
        "max_size_bytes": 1024 * 1024 * 1024,
        "max_object_bytes": 50 * 1024 * 1024,
        "hls_ttl_seconds": 300,
        "binary_ttl_seconds": 3600,
        "min_ttl_seconds": 60,
        "sweep_interval_seconds": 600,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "api": {
        "rate_limit_rpm": 0,
    },
}
