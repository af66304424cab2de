"""Tests for the engine subprocess bridge."""

import json

import pytest

from datachef_api.engine.bridge import EngineBridge
from datachef_api.engine.bridge import normalize_level
from datachef_api.engine.bridge import parse_diagnostic_line
from datachef_api.enums import LogLevel
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import EngineExecutionError
from datachef_api.exceptions import EngineProtocolError
from datachef_api.exceptions import EngineSpawnError
from datachef_api.settings import Settings


class TestParseDiagnosticLine:
    def test_structured_line(self):
        entry = parse_diagnostic_line('{"level":"warn","message":"slow scan"}')

        assert entry.level == LogLevel.WARN
        assert entry.message == "slow scan"

    @pytest.mark.parametrize(
        "line",
        [
            "SLF4J: Failed to load class",
            "[1, 2, 3]",
            '{"level": "info"}',
            '{"level": 3, "message": "x"}',
            "",
        ],
    )
    def test_other_lines_are_ignored(self, line):
        assert parse_diagnostic_line(line) is None

    @pytest.mark.parametrize(
        "level,expected",
        [("WARNING", LogLevel.WARN), ("fatal", LogLevel.ERROR), ("trace", LogLevel.DEBUG), ("verbose", LogLevel.INFO)],
    )
    def test_normalize_level(self, level, expected):
        assert normalize_level(level) == expected


class TestCommand:
    def test_java_command(self):
        settings = Settings(
            database_url=None,
            engine_java_home="/opt/java",
            engine_jar_path="/opt/engine.jar",
            engine_jvm_options=["-Xmx1g"],
        )
        bridge = EngineBridge(settings)

        command = bridge.build_command("preview", ["--table", "orders"], {"iceberg": {"catalog": "c"}})

        assert command[:4] == ["/opt/java/bin/java", "-Xmx1g", "-jar", "/opt/engine.jar"]
        assert command[4:8] == ["--action", "preview", "--table", "orders"]
        assert command[8] == "--config"
        assert json.loads(command[9]) == {"iceberg": {"catalog": "c"}}

    def test_command_override(self):
        bridge = EngineBridge(Settings(database_url=None, engine_command=["engine-stub", "--fast"]))

        assert bridge.base_command() == ["engine-stub", "--fast"]

    def test_missing_jar(self):
        bridge = EngineBridge(Settings(database_url=None, engine_jar_path=""))

        with pytest.raises(ConfigError):
            bridge.base_command()


class TestInvoke:
    """Runs a stub engine script through the real subprocess protocol."""

    @pytest.mark.asyncio
    async def test_plain_lines_are_logs_and_last_brace_line_is_result(self, make_bridge):
        logs = []

        result = await make_bridge("tables").invoke("list", on_log=logs.append)

        assert result == {"tables": ["a", "b"]}
        assert [entry.message for entry in logs] == ["Connecting to catalog", "Listing namespaces"]
        assert all(entry.level == LogLevel.INFO for entry in logs)

    @pytest.mark.asyncio
    async def test_diagnostic_lines(self, make_bridge):
        logs = []

        result = await make_bridge("ok").invoke("list", on_log=logs.append)

        warnings = [entry for entry in logs if entry.level == LogLevel.WARN]
        assert [entry.message for entry in warnings] == ["schema drift detected"]
        assert all("SLF4J" not in entry.message for entry in logs)
        assert result["tables"][0]["name"] == "orders"

    @pytest.mark.asyncio
    async def test_positional_args_and_config_reach_engine(self, make_bridge):
        bridge = make_bridge("ok")

        result = await bridge.invoke("preview", ["--table", "default.orders", "--limit", "2"], {"minio": {}})

        assert result["rowCount"] == 2
        assert result["rows"][0]["table"] == "default.orders"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, make_bridge):
        with pytest.raises(EngineExecutionError) as exc_info:
            await make_bridge("fail").invoke("preview", ["--table", "missing"])

        assert exc_info.value.exit_code == 1
        assert "Table not found: missing" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_no_result_line(self, make_bridge):
        logs = []

        with pytest.raises(EngineProtocolError, match="No JSON output found"):
            await make_bridge("silent").invoke("list", on_log=logs.append)

        assert [entry.message for entry in logs] == ["finished without a result"]

    @pytest.mark.asyncio
    async def test_malformed_result_line(self, make_bridge):
        with pytest.raises(EngineProtocolError, match="Failed to parse engine output"):
            await make_bridge("bad-json").invoke("list")

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tmp_path):
        missing = str(tmp_path / "no-such-engine")
        bridge = EngineBridge(Settings(database_url=None, engine_command=[missing]))

        with pytest.raises(EngineSpawnError, match="Cannot start engine"):
            await bridge.invoke("list")

    @pytest.mark.asyncio
    async def test_on_spawn_receives_process(self, make_bridge):
        spawned = []

        await make_bridge("tables").invoke("list", on_spawn=spawned.append)

        assert len(spawned) == 1
        assert spawned[0].returncode == 0

    @pytest.mark.asyncio
    async def test_oversized_output_line_kills_engine(self, make_bridge):
        spawned = []
        bridge = make_bridge("long-line", stream_limit=1024)

        with pytest.raises(EngineProtocolError, match="exceeds 1024 bytes"):
            await bridge.invoke("execute", on_spawn=spawned.append)

        assert spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_failing_log_callback_kills_engine(self, make_bridge):
        spawned = []

        def reject(entry):
            raise RuntimeError("log sink closed")

        with pytest.raises(RuntimeError, match="log sink closed"):
            await make_bridge("slow").invoke("execute", on_log=reject, on_spawn=spawned.append)

        assert spawned[0].returncode is not None
