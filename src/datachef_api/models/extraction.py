"""
Reference Field Extractor

Applies a FieldExtraction to the text of one record, the same way the engine
does, so a specification can be checked against sample lines without
launching an engine process.
"""

import re
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from datachef_api.enums import OnError
from datachef_api.models.pipe import DelimiterExtraction
from datachef_api.models.pipe import FieldExtraction
from datachef_api.models.pipe import FieldProcessing
from datachef_api.models.pipe import FixedExtraction
from datachef_api.models.pipe import RegexExtraction
from datachef_api.models.pipe import SplitExtraction

# Java-style date tokens mapped to strptime directives, longest first
_DATE_TOKENS = [
    ("yyyy", "%Y"),
    ("SSS", "%f"),
    ("MMM", "%b"),
    ("yy", "%y"),
    ("MM", "%m"),
    ("dd", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
]


class FieldExtractionError(ValueError):
    """Raised when a record cannot be extracted under the 'fail' policy."""

    def __init__(self, message: str, record: str):
        super().__init__(message)
        self.record = record


def _split_values(extraction: FieldExtraction, text: str) -> List[Any]:
    """Produce the raw positional values for one record (may be too few or too many)."""
    if isinstance(extraction, RegexExtraction):
        match = re.search(extraction.pattern, text)
        if match is None:
            return []
        return list(match.groups())

    if isinstance(extraction, DelimiterExtraction):
        return text.split(extraction.field_delimiter)

    if isinstance(extraction, FixedExtraction):
        values = []
        offset = 0
        for width in extraction.fixed_widths:
            # A field cut short by the end of the record counts as missing
            if offset + width > len(text):
                break
            values.append(text[offset : offset + width])
            offset += width
        return values

    if isinstance(extraction, SplitExtraction):
        values: List[Any] = [text]
        for step in extraction.split_steps:
            next_values: List[Any] = []
            for value in values:
                if isinstance(value, list):
                    # Arrays kept by an earlier step are final
                    next_values.append(value)
                    continue
                parts = value.split(step.delimiter)
                if step.index is not None:
                    if -len(parts) <= step.index < len(parts):
                        next_values.append(parts[step.index])
                elif step.keep_all:
                    next_values.append(parts)
                else:
                    next_values.extend(parts)
            values = next_values
        return values

    raise TypeError(f"Unsupported extraction method: {type(extraction).__name__}")


def java_date_format_to_strptime(date_format: str) -> str:
    """Translate a Java date pattern (yyyy-MM-dd HH:mm:ss) into a strptime format."""
    result = []
    i = 0
    while i < len(date_format):
        for token, directive in _DATE_TOKENS:
            if date_format.startswith(token, i):
                result.append(directive)
                i += len(token)
                break
        else:
            char = date_format[i]
            result.append("%%" if char == "%" else char)
            i += 1
    return "".join(result)


def _process_value(value: Any, processing: FieldProcessing) -> Any:
    if not isinstance(value, str):
        return value

    if processing.trim:
        value = value.strip()
    for replacement in processing.replace:
        value = value.replace(replacement.from_, replacement.to)
    if processing.regex:
        match = re.search(processing.regex, value)
        if match is None:
            raise ValueError(f"Value does not match pattern {processing.regex!r}")
        value = match.group(1) if match.re.groups else match.group(0)
    if processing.date_format:
        parsed = datetime.strptime(value, java_date_format_to_strptime(processing.date_format))
        value = parsed.isoformat()
    return value


def extract_fields(extraction: FieldExtraction, text: str) -> Optional[Dict[str, Any]]:
    """
    Extract named fields from one record.

    Args:
        extraction: FieldExtraction rule
        text: Record text

    Returns:
        Dict of field name to value, or None when the record is skipped

    Raises:
        FieldExtractionError: If the record cannot be extracted and on_error is 'fail'
    """
    expected = len(extraction.field_names)
    values = _split_values(extraction, text)

    if len(values) != expected:
        problem = "too few" if len(values) < expected else "too many"
        if extraction.on_error == OnError.FAIL:
            raise FieldExtractionError(
                f"Extraction produced {problem} fields ({len(values)} of {expected})",
                record=text,
            )
        if extraction.on_error == OnError.SKIP:
            return None
        values = (values + [None] * expected)[:expected]

    record = dict(zip(extraction.field_names, values))

    for processing in extraction.field_processing:
        if processing.field not in record:
            continue
        try:
            record[processing.field] = _process_value(record[processing.field], processing)
        except ValueError as e:
            if extraction.on_error == OnError.FAIL:
                raise FieldExtractionError(f"Processing field '{processing.field}' failed: {e}", record=text)
            if extraction.on_error == OnError.SKIP:
                return None
            record[processing.field] = None

    return record


def extract_records(extraction: FieldExtraction, lines: List[str]) -> Dict[str, Any]:
    """
    Extract every sample line, collecting failures instead of stopping.

    Returns:
        Dict with 'records', 'skipped' count and 'errors' ({line, message})
    """
    records: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    skipped = 0

    for line_number, line in enumerate(lines, start=1):
        try:
            record = extract_fields(extraction, line)
        except FieldExtractionError as e:
            errors.append({"line": line_number, "message": str(e)})
            continue
        if record is None:
            skipped += 1
        else:
            records.append(record)

    return {"records": records, "skipped": skipped, "errors": errors}
