"""Ingestion layer.

This package contains adapters that turn raw upstream geodata into
normalized facility entities.
"""

__all__: list[str] = []
