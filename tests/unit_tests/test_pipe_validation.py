"""Tests for pipe specification parsing and the semantic validator."""

import pydantic
import pytest

from datachef_api.enums import RecordType
from datachef_api.models.pipe import FilePattern
from datachef_api.models.pipe import PipeSpec
from datachef_api.models.validation import validate_pipe_spec


def _fields(issues):
    return [issue.field for issue in issues]


class TestPipeSpecParsing:
    """Structural parsing of the camelCase wire form."""

    def test_valid_spec_has_no_issues(self, json_pipe_payload):
        spec = PipeSpec.model_validate(json_pipe_payload)

        assert validate_pipe_spec(spec) == []
        assert spec.storage_path == "/orders"
        assert spec.output.catalog == "iceberg_catalog"
        assert spec.output.namespace == "default"

    def test_serializes_back_to_camel_case(self, log_pipe_payload):
        spec = PipeSpec.model_validate(log_pipe_payload)
        wire = spec.model_dump(mode="json", by_alias=True)

        assert wire["storagePath"] == "/app_logs"
        assert wire["schema"]["inferFromData"] is False
        assert wire["recordBoundary"]["fieldExtraction"]["fieldNames"] == ["timestamp", "level", "message"]

    def test_delimited_records_default_to_comma_with_header(self, json_pipe_payload):
        json_pipe_payload["recordBoundary"] = {"type": "delimited"}
        spec = PipeSpec.model_validate(json_pipe_payload)

        assert spec.record_boundary.type == RecordType.DELIMITED
        assert spec.record_boundary.delimiter == ","
        assert spec.record_boundary.has_header is True

    def test_explicit_delimiter_is_kept(self, json_pipe_payload):
        json_pipe_payload["recordBoundary"] = {"type": "delimited", "delimiter": "|", "hasHeader": False}
        spec = PipeSpec.model_validate(json_pipe_payload)

        assert spec.record_boundary.delimiter == "|"
        assert spec.record_boundary.has_header is False

    def test_unknown_extraction_method_is_rejected(self, log_pipe_payload):
        log_pipe_payload["recordBoundary"]["fieldExtraction"]["method"] = "magic"

        with pytest.raises(pydantic.ValidationError):
            PipeSpec.model_validate(log_pipe_payload)

    def test_unknown_column_type_is_rejected(self, log_pipe_payload):
        log_pipe_payload["schema"]["columns"][0]["type"] = "varchar"

        with pytest.raises(pydantic.ValidationError):
            PipeSpec.model_validate(log_pipe_payload)

    def test_missing_output_is_rejected(self, json_pipe_payload):
        del json_pipe_payload["output"]

        with pytest.raises(pydantic.ValidationError):
            PipeSpec.model_validate(json_pipe_payload)


class TestValidatePipeSpec:
    """Semantic acceptance rules."""

    def test_storage_path_must_start_with_root(self, json_pipe_payload):
        json_pipe_payload["storagePath"] = "orders"

        issues = validate_pipe_spec(PipeSpec.model_validate(json_pipe_payload))

        assert _fields(issues) == ["storagePath"]

    def test_empty_name_and_table_name(self, json_pipe_payload):
        json_pipe_payload["name"] = "  "
        json_pipe_payload["output"]["tableName"] = ""

        issues = validate_pipe_spec(PipeSpec.model_validate(json_pipe_payload))

        assert set(_fields(issues)) == {"name", "output.tableName"}

    def test_all_violations_are_reported(self, json_pipe_payload):
        json_pipe_payload["storagePath"] = "orders"
        json_pipe_payload["filePattern"] = {"extensions": [], "minSize": 10, "maxSize": 5}

        issues = validate_pipe_spec(PipeSpec.model_validate(json_pipe_payload))

        assert set(_fields(issues)) == {"storagePath", "filePattern.extensions", "filePattern.minSize"}

    def test_regex_group_count_must_match_field_names(self, log_pipe_payload):
        log_pipe_payload["recordBoundary"]["fieldExtraction"]["fieldNames"] = ["timestamp", "level"]

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["recordBoundary.fieldExtraction.fieldNames"]
        assert "3 capture group(s)" in issues[0].message

    def test_invalid_regex_is_reported(self, log_pipe_payload):
        log_pipe_payload["recordBoundary"]["fieldExtraction"]["pattern"] = "(unclosed"

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["recordBoundary.fieldExtraction.pattern"]

    def test_fixed_widths_must_match_field_names(self, log_pipe_payload):
        log_pipe_payload["recordBoundary"]["fieldExtraction"] = {
            "method": "fixed",
            "fixedWidths": [4, 1],
            "fieldNames": ["a", "b", "c"],
        }

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["recordBoundary.fieldExtraction.fieldNames"]

    def test_processing_of_unknown_field(self, log_pipe_payload):
        log_pipe_payload["recordBoundary"]["fieldExtraction"]["fieldProcessing"] = [{"field": "host", "trim": True}]

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["recordBoundary.fieldExtraction.fieldProcessing[0].field"]

    def test_bucket_transform_requires_count(self, log_pipe_payload):
        log_pipe_payload["partitioning"]["keys"] = [{"column": "level", "transform": "bucket"}]

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["partitioning.keys[0].bucketCount"]

    def test_truncate_transform_requires_length(self, log_pipe_payload):
        log_pipe_payload["partitioning"]["keys"] = [{"column": "message", "transform": "truncate"}]

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == ["partitioning.keys[0].truncateLength"]

    @pytest.mark.parametrize(
        "key,field",
        [
            ({"column": "level", "transform": "bucket", "bucketCount": -3}, "partitioning.keys[0].bucketCount"),
            ({"column": "message", "transform": "truncate", "truncateLength": 0}, "partitioning.keys[0].truncateLength"),
        ],
    )
    def test_transform_parameters_must_be_positive(self, log_pipe_payload, key, field):
        log_pipe_payload["partitioning"]["keys"] = [key]

        issues = validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload))

        assert _fields(issues) == [field]

    def test_positive_transform_parameters_pass(self, log_pipe_payload):
        log_pipe_payload["partitioning"]["keys"] = [
            {"column": "level", "transform": "bucket", "bucketCount": 8},
            {"column": "message", "transform": "truncate", "truncateLength": 16},
        ]

        assert validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload)) == []

    def test_disabled_partitioning_is_not_checked(self, log_pipe_payload):
        log_pipe_payload["partitioning"] = {"enabled": False, "keys": [{"column": "", "transform": "truncate"}]}

        assert validate_pipe_spec(PipeSpec.model_validate(log_pipe_payload)) == []

    def test_extraction_ignored_for_non_text_records(self, json_pipe_payload):
        json_pipe_payload["recordBoundary"] = {
            "type": "jsonl",
            "fieldExtraction": {"method": "regex", "pattern": "(a)(b)", "fieldNames": ["a"]},
        }

        assert validate_pipe_spec(PipeSpec.model_validate(json_pipe_payload)) == []


class TestFilePattern:
    """Eligibility of objects under a pipe's storage path."""

    def test_extensions_are_normalized(self):
        pattern = FilePattern(extensions=[".JSON", "csv", " "])

        assert pattern.extensions == ["json", "csv"]

    @pytest.mark.parametrize(
        "key,size,expected",
        [
            ("orders/2026-01-05_orders.json", 100, True),
            ("orders/2026-01-05_orders.csv", 100, False),
            ("orders/archive_orders.json", 100, False),
            ("orders/2026-01-05_orders.json", 5, False),
            ("orders/2026-01-05_refunds.json", 100, False),
        ],
    )
    def test_matches(self, key, size, expected):
        pattern = FilePattern(extensions=["json"], prefix="2026", suffix="_orders", minSize=10)

        assert pattern.matches(key, size) is expected
