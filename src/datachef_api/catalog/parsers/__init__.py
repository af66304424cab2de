"""Pipe definition file parsers (YAML / JSON)."""

from datachef_api.catalog.parsers.parser_factory import parse_pipe_file

__all__ = ["parse_pipe_file"]
