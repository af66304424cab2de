"""Compute engine subprocess bridge."""

from datachef_api.engine.bridge import EngineBridge

__all__ = ["EngineBridge"]
