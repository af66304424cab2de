"""Settings for the Data Chef API."""

from pathlib import Path
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

DEFAULT_JVM_OPTIONS = [
    "--add-opens=java.base/java.lang=ALL-UNNAMED",
    "--add-opens=java.base/java.lang.invoke=ALL-UNNAMED",
    "--add-opens=java.base/java.lang.reflect=ALL-UNNAMED",
    "--add-opens=java.base/java.io=ALL-UNNAMED",
    "--add-opens=java.base/java.net=ALL-UNNAMED",
    "--add-opens=java.base/java.nio=ALL-UNNAMED",
    "--add-opens=java.base/java.util=ALL-UNNAMED",
    "--add-opens=java.base/java.util.concurrent=ALL-UNNAMED",
    "--add-opens=java.base/java.util.concurrent.atomic=ALL-UNNAMED",
    "--add-opens=java.base/sun.nio.ch=ALL-UNNAMED",
    "--add-opens=java.base/sun.nio.cs=ALL-UNNAMED",
    "--add-opens=java.base/sun.security.action=ALL-UNNAMED",
    "--add-opens=java.base/sun.util.calendar=ALL-UNNAMED",
]

# Fields that may be changed at runtime through PUT /config
RUNTIME_UPDATABLE_FIELDS = {
    "storage_endpoint",
    "storage_port",
    "storage_use_ssl",
    "storage_access_key",
    "storage_secret_key",
    "storage_bucket",
    "storage_region",
    "engine_java_home",
    "engine_jar_path",
    "engine_jvm_options",
    "engine_workdir",
    "engine_command",
    "spark_master_url",
    "spark_driver_memory",
    "spark_executor_memory",
    "spark_home",
    "python_path",
    "iceberg_warehouse",
    "iceberg_catalog",
}

SECRET_FIELDS = {"storage_access_key", "storage_secret_key"}


class Settings(BaseSettings):
    """
    Settings for the Data Chef API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) is a popular
    framework for organizing, validating, and reading configuration values from a variety of sources
    including environment variables.

    This class automatically reads from:
    1. Environment variables (production)
    2. .env file (local development)

    Environment variable names are treated case-insensitively.
    """

    # Application
    app_name: str = "Data Chef"
    """Service name reported by /health."""

    app_version: str = "1.0.0"
    """Service version reported by /health."""

    log_level: str = "INFO"
    """Minimum level of the stdout log sink."""

    # Pipe catalog (PostgreSQL)
    database_url: Optional[str] = None
    """PostgreSQL connection string for the pipe catalog (required to serve /pipes and /execution)."""

    seed_default_pipes: bool = True
    """Create the built-in JSON and log file pipes at startup when missing."""

    persist_execution_history: bool = True
    """Write one row per execution to the executions table."""

    # Object storage (S3 / MinIO)
    storage_endpoint: str = "localhost"
    """S3/MinIO host name."""

    storage_port: int = 9000
    """S3/MinIO port."""

    storage_use_ssl: bool = False
    """Use HTTPS for the storage endpoint."""

    storage_access_key: str = "minioadmin"
    """Storage access key."""

    storage_secret_key: str = "minioadmin"
    """Storage secret key."""

    storage_bucket: str = "data-chef"
    """Bucket holding every pipe folder."""

    storage_region: str = "us-east-1"
    """Region passed to the S3 client."""

    max_upload_size_bytes: int = 100 * 1024 * 1024
    """Per-file upload limit (100 MiB)."""

    # Compute engine
    engine_java_home: Optional[str] = None
    """JAVA_HOME for the engine process (falls back to the JAVA_HOME environment variable)."""

    engine_jar_path: str = str(Path(__file__).resolve().parents[2] / "java" / "build" / "libs" / "data-chef-spark-1.0.jar")
    """Path of the engine jar."""

    engine_jvm_options: List[str] = Field(default_factory=lambda: list(DEFAULT_JVM_OPTIONS))
    """JVM flags placed before -jar."""

    engine_workdir: Optional[str] = None
    """Working directory of the engine process."""

    engine_command: Optional[List[str]] = None
    """Explicit argv prefix replacing the java/-jar invocation (non-JVM engines, stubs)."""

    spark_master_url: str = "local[*]"
    spark_driver_memory: str = "2g"
    spark_executor_memory: str = "2g"
    spark_home: str = ""
    python_path: str = "python3"

    # Table catalog
    iceberg_warehouse: str = "s3a://data-chef/warehouse"
    iceberg_catalog: str = "iceberg_catalog"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables not defined in the model
        validate_default=True,
    )

    def storage_config(self) -> Dict[str, Any]:
        """Storage section of the engine config blob."""
        return {
            "endpoint": self.storage_endpoint,
            "port": self.storage_port,
            "useSSL": self.storage_use_ssl,
            "accessKey": self.storage_access_key,
            "secretKey": self.storage_secret_key,
            "defaultBucket": self.storage_bucket,
        }

    def spark_config(self) -> Dict[str, Any]:
        """Spark section of the engine config blob."""
        return {
            "pythonPath": self.python_path,
            "sparkHome": self.spark_home,
            "masterUrl": self.spark_master_url,
            "driverMemory": self.spark_driver_memory,
            "executorMemory": self.spark_executor_memory,
            "javaHome": self.engine_java_home,
        }

    def iceberg_config(self) -> Dict[str, Any]:
        """Table catalog section of the engine config blob."""
        return {
            "warehouse": self.iceberg_warehouse,
            "catalog": self.iceberg_catalog,
        }

    def connection_blob(self) -> Dict[str, Any]:
        """Connection/runtime parameters shared by every engine action."""
        return {
            "minio": self.storage_config(),
            "spark": self.spark_config(),
            "iceberg": self.iceberg_config(),
        }

    def runtime_view(self) -> Dict[str, Any]:
        """Runtime-updatable settings with camelCase keys and secrets masked."""
        view = self.model_dump(include=RUNTIME_UPDATABLE_FIELDS)
        for field in SECRET_FIELDS:
            if view.get(field):
                view[field] = "****"
        return {to_camel(name): value for name, value in sorted(view.items())}

    def with_updates(self, updates: Dict[str, Any]) -> "Settings":
        """
        Return a validated copy with runtime updates applied.

        Raises:
            ValueError: If a field is not runtime-updatable
            pydantic.ValidationError: If a value is invalid
        """
        unknown = set(updates) - RUNTIME_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Settings cannot be changed at runtime: {sorted(unknown)}")
        merged = self.model_dump()
        merged.update(updates)
        return Settings.model_validate(merged)
