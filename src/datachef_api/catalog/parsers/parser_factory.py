"""
Parser Factory

Detects the pipe file format from its extension and dispatches to the matching parser.
"""

import json
from typing import List
from typing import Union

from loguru import logger

from datachef_api.catalog.parsers.yaml_parser import parse_yaml
from datachef_api.catalog.parsers.yaml_parser import specs_from_document
from datachef_api.models.pipe import PipeSpec


def parse_json(file_content: Union[str, bytes]) -> List[PipeSpec]:
    """
    Parse JSON file content into pipe specifications.

    Raises:
        ValueError: If JSON syntax is invalid
        pydantic.ValidationError: If a pipe does not match the PipeSpec schema
    """
    try:
        data = json.loads(file_content)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error: {e}")
        raise ValueError(f"Invalid JSON syntax: {e}")
    return specs_from_document(data)


def parse_pipe_file(file_content: Union[str, bytes], filename: str) -> List[PipeSpec]:
    """
    Auto-detect format and parse a pipe definition file.

    Supports:
    - YAML (.yaml, .yml)
    - JSON (.json)

    Raises:
        ValueError: If the file format is unsupported or the content is malformed
        pydantic.ValidationError: If a pipe does not match the PipeSpec schema
    """
    ext = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""

    logger.debug(f"Parsing pipe file: {filename} (detected format: {ext})")

    if ext in ("yaml", "yml"):
        return parse_yaml(file_content)
    if ext == "json":
        return parse_json(file_content)
    raise ValueError(f"Unsupported file format: .{ext} (supported: .yaml, .yml, .json)")
