"""
Pipe Specification Validator

Semantic acceptance rules that go beyond the structural checks pydantic
performs while parsing. Validation always runs to completion and reports every
violation instead of stopping at the first one.
"""

import re
from typing import List
from typing import Optional

from pydantic import BaseModel

from datachef_api.enums import PartitionTransform
from datachef_api.enums import RecordType
from datachef_api.models.pipe import PATH_ROOT
from datachef_api.models.pipe import FieldExtraction
from datachef_api.models.pipe import FixedExtraction
from datachef_api.models.pipe import PipeSpec
from datachef_api.models.pipe import RegexExtraction


class ValidationIssue(BaseModel):
    """One rule violation, addressed by its camelCase field path."""

    field: str
    message: str


def _positive(value: Optional[int]) -> bool:
    return value is not None and value > 0


def _check_regex(pattern: str, field: str, issues: List[ValidationIssue]) -> "re.Pattern | None":
    try:
        return re.compile(pattern)
    except re.error as e:
        issues.append(ValidationIssue(field=field, message=f"Invalid regular expression: {e}"))
        return None


def validate_pipe_spec(spec: PipeSpec) -> List[ValidationIssue]:
    """
    Validate a pipe specification.

    Args:
        spec: Parsed pipe specification

    Returns:
        List of ValidationIssue, empty iff the specification is acceptable
    """
    issues: List[ValidationIssue] = []

    if not spec.name or not spec.name.strip():
        issues.append(ValidationIssue(field="name", message="name cannot be empty"))

    # Storage path
    if not spec.storage_path or not spec.storage_path.strip():
        issues.append(ValidationIssue(field="storagePath", message="storagePath cannot be empty"))
    elif not spec.storage_path.startswith(PATH_ROOT):
        issues.append(
            ValidationIssue(field="storagePath", message=f"storagePath must begin with '{PATH_ROOT}'")
        )

    # File pattern
    file_pattern = spec.file_pattern
    if not file_pattern.extensions:
        issues.append(
            ValidationIssue(field="filePattern.extensions", message="At least one file extension is required")
        )
    if file_pattern.regex:
        _check_regex(file_pattern.regex, "filePattern.regex", issues)
    if (
        file_pattern.min_size is not None
        and file_pattern.max_size is not None
        and file_pattern.min_size > file_pattern.max_size
    ):
        issues.append(ValidationIssue(field="filePattern.minSize", message="minSize cannot exceed maxSize"))

    # Output
    if not spec.output.table_name or not spec.output.table_name.strip():
        issues.append(ValidationIssue(field="output.tableName", message="output.tableName cannot be empty"))

    # Partitioning
    if spec.partitioning.enabled:
        for i, key in enumerate(spec.partitioning.keys):
            path = f"partitioning.keys[{i}]"
            if not key.column or not key.column.strip():
                issues.append(ValidationIssue(field=f"{path}.column", message="Partition column cannot be empty"))
            if key.transform == PartitionTransform.BUCKET and not _positive(key.bucket_count):
                issues.append(
                    ValidationIssue(
                        field=f"{path}.bucketCount",
                        message="bucket transform requires a positive bucketCount",
                    )
                )
            if key.transform == PartitionTransform.TRUNCATE and not _positive(key.truncate_length):
                issues.append(
                    ValidationIssue(
                        field=f"{path}.truncateLength",
                        message="truncate transform requires a positive truncateLength",
                    )
                )

    # Field extraction on text records
    boundary = spec.record_boundary
    if boundary.type == RecordType.TEXT and boundary.field_extraction is not None:
        issues.extend(validate_field_extraction(boundary.field_extraction, "recordBoundary.fieldExtraction"))

    return issues


def validate_field_extraction(extraction: FieldExtraction, path: str = "fieldExtraction") -> List[ValidationIssue]:
    """Rules for one field extraction, with issue fields prefixed by path."""
    issues: List[ValidationIssue] = []
    field_count = len(extraction.field_names)

    if field_count == 0:
        issues.append(ValidationIssue(field=f"{path}.fieldNames", message="fieldNames cannot be empty"))

    if isinstance(extraction, RegexExtraction):
        compiled = _check_regex(extraction.pattern, f"{path}.pattern", issues)
        if compiled is not None and compiled.groups != field_count:
            issues.append(
                ValidationIssue(
                    field=f"{path}.fieldNames",
                    message=(
                        f"Pattern has {compiled.groups} capture group(s) "
                        f"but {field_count} field name(s) are declared"
                    ),
                )
            )
    elif isinstance(extraction, FixedExtraction):
        if len(extraction.fixed_widths) != field_count:
            issues.append(
                ValidationIssue(
                    field=f"{path}.fieldNames",
                    message=(
                        f"{len(extraction.fixed_widths)} fixed width(s) "
                        f"but {field_count} field name(s) are declared"
                    ),
                )
            )

    for i, processing in enumerate(extraction.field_processing):
        if processing.field not in extraction.field_names:
            issues.append(
                ValidationIssue(
                    field=f"{path}.fieldProcessing[{i}].field",
                    message=f"Unknown field '{processing.field}'",
                )
            )
        if processing.regex:
            _check_regex(processing.regex, f"{path}.fieldProcessing[{i}].regex", issues)

    return issues
