"""
Engine Bridge

Runs the compute engine as a child process and demultiplexes its output.

Protocol:
- argv: <engine> --action <action> <positional args...> --config <json>
- stdout: free-form progress text. Every line is forwarded as an info log
  entry, except the last line starting with '{', which is the JSON result.
- stderr: newline-delimited JSON. A line with string "level" and "message"
  becomes a structured log entry; any other line is ignored.
- exit code 0 is required for success.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from datachef_api.enums import LogLevel
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import EngineExecutionError
from datachef_api.exceptions import EngineProtocolError
from datachef_api.exceptions import EngineSpawnError
from datachef_api.models.execution import ExecutionLog
from datachef_api.settings import Settings

RESULT_PREFIX = "{"
STREAM_LIMIT = 16 * 1024 * 1024  # longest single line accepted from the engine

_LEVEL_ALIASES = {
    "trace": LogLevel.DEBUG,
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warn": LogLevel.WARN,
    "warning": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "fatal": LogLevel.ERROR,
    "critical": LogLevel.ERROR,
}

LogCallback = Callable[[ExecutionLog], None]
SpawnCallback = Callable[[asyncio.subprocess.Process], None]


def normalize_level(level: str) -> LogLevel:
    return _LEVEL_ALIASES.get(level.strip().lower(), LogLevel.INFO)


def parse_diagnostic_line(line: str) -> Optional[ExecutionLog]:
    """Structured log entry for one stderr line, or None if the line is not one."""
    try:
        payload = json.loads(line)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    level = payload.get("level")
    message = payload.get("message")
    if not isinstance(level, str) or not isinstance(message, str):
        return None
    return ExecutionLog(level=normalize_level(level), message=message)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill an engine process abandoned mid-read and reap it."""
    if process.returncode is None:
        logger.warning("Killing engine process", pid=process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass  # exited in the meantime
    await process.wait()


class EngineBridge:
    """Invokes the compute engine through its subprocess protocol."""

    def __init__(self, settings: Settings, stream_limit: int = STREAM_LIMIT):
        self.settings = settings
        self.stream_limit = stream_limit

    def base_command(self) -> List[str]:
        """
        argv prefix that starts the engine.

        Raises:
            ConfigError: If no engine command or jar is configured
        """
        if self.settings.engine_command:
            return list(self.settings.engine_command)
        if not self.settings.engine_jar_path:
            raise ConfigError("engine_jar_path is not configured")

        java_home = self.settings.engine_java_home or os.environ.get("JAVA_HOME")
        java = str(Path(java_home) / "bin" / "java") if java_home else "java"
        return [java, *self.settings.engine_jvm_options, "-jar", self.settings.engine_jar_path]

    def build_command(self, action: str, args: List[str], config: Dict[str, Any]) -> List[str]:
        return [
            *self.base_command(),
            "--action",
            action,
            *args,
            "--config",
            json.dumps(config, default=str),
        ]

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        java_home = self.settings.engine_java_home
        if java_home:
            env["JAVA_HOME"] = java_home
            env["PATH"] = f"{Path(java_home) / 'bin'}{os.pathsep}{env.get('PATH', '')}"
        return env

    async def invoke(
        self,
        action: str,
        args: Optional[List[str]] = None,
        config: Optional[Dict[str, Any]] = None,
        on_log: Optional[LogCallback] = None,
        on_spawn: Optional[SpawnCallback] = None,
    ) -> Dict[str, Any]:
        """
        Run one engine action to completion.

        Args:
            action: Action verb (execute, list, preview, query)
            args: Positional arguments placed after the action
            config: Configuration blob passed as --config JSON
            on_log: Receives each log entry as it is produced
            on_spawn: Receives the process handle right after it starts

        Returns:
            The engine's JSON result object

        Raises:
            EngineSpawnError: The process could not be started
            EngineExecutionError: The process exited with a nonzero code
            EngineProtocolError: No result line, or the result line is not valid JSON
        """
        command = self.build_command(action, args or [], config or {})

        def emit(entry: ExecutionLog) -> None:
            if on_log is not None:
                on_log(entry)

        logger.info("Starting engine process", action=action, executable=command[0])
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=self.settings.engine_workdir or None,
                env=self._environment(),
                limit=self.stream_limit,
            )
        except OSError as e:  # missing executable or permission denied
            raise EngineSpawnError(f"Cannot start engine '{command[0]}': {e}") from e

        if on_spawn is not None:
            on_spawn(process)

        result_line: Optional[str] = None
        stderr_lines: List[str] = []

        async def read_stdout() -> None:
            nonlocal result_line
            async for raw in process.stdout:
                line = _decode(raw)
                if line.lstrip().startswith(RESULT_PREFIX):
                    # An earlier candidate was progress text after all
                    if result_line is not None:
                        emit(ExecutionLog(level=LogLevel.INFO, message=result_line))
                    result_line = line.strip()
                    continue
                if line.strip():
                    emit(ExecutionLog(level=LogLevel.INFO, message=line))

        async def read_stderr() -> None:
            async for raw in process.stderr:
                line = _decode(raw)
                stderr_lines.append(line)
                entry = parse_diagnostic_line(line.strip())
                if entry is not None:
                    emit(entry)

        exit_code: Optional[int] = None
        try:
            try:
                await asyncio.gather(read_stdout(), read_stderr())
            except (ValueError, asyncio.LimitOverrunError) as e:
                # readline gives up on a line longer than the stream limit
                raise EngineProtocolError(f"Engine output line exceeds {self.stream_limit} bytes") from e
            exit_code = await process.wait()
        finally:
            if exit_code is None:
                await _kill(process)

        if exit_code != 0:
            logger.warning("Engine process failed", action=action, exit_code=exit_code)
            raise EngineExecutionError(exit_code, "\n".join(stderr_lines))

        if result_line is None:
            raise EngineProtocolError("No JSON output found")
        try:
            result = json.loads(result_line)
        except ValueError as e:
            raise EngineProtocolError(f"Failed to parse engine output: {e}") from e
        if not isinstance(result, dict):
            raise EngineProtocolError("Engine result is not a JSON object")

        logger.info("Engine process completed", action=action)
        return result
