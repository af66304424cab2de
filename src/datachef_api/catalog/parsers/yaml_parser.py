"""
YAML Parser

Parses YAML pipe definition files into PipeSpec models.
"""

from pathlib import Path
from typing import Any
from typing import List
from typing import Union

import yaml
from loguru import logger

from datachef_api.models.pipe import PipeSpec


def specs_from_document(data: Any) -> List[PipeSpec]:
    """
    Build pipe specifications from a parsed document.

    Accepts a single pipe mapping, a list of pipe mappings, or a mapping with
    a top-level ``pipes`` list.

    Raises:
        ValueError: If the document has none of those shapes
        pydantic.ValidationError: If a pipe does not match the PipeSpec schema
    """
    if isinstance(data, dict) and "pipes" in data:
        data = data["pipes"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not data:
        raise ValueError("Pipe file must contain a pipe, a list of pipes, or a 'pipes' list")
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Pipe #{i + 1} is not a mapping")
    return [PipeSpec.model_validate(item) for item in data]


def parse_yaml(file_content: Union[str, bytes, Path]) -> List[PipeSpec]:
    """
    Parse YAML file content into pipe specifications.

    Args:
        file_content: YAML content as string, bytes, or Path to file

    Returns:
        List of PipeSpec

    Raises:
        ValueError: If YAML syntax is invalid or the file is empty
        pydantic.ValidationError: If a pipe does not match the PipeSpec schema
    """
    if isinstance(file_content, Path):
        content = file_content.read_text(encoding="utf-8")
    elif isinstance(file_content, bytes):
        content = file_content.decode("utf-8")
    else:
        content = file_content

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error: {e}")
        raise ValueError(f"Invalid YAML syntax: {e}")

    if data is None:
        raise ValueError("Empty YAML file")

    specs = specs_from_document(data)
    logger.debug(f"Successfully parsed YAML: {len(specs)} pipe(s)")
    return specs
