"""Settings for the lending monitor, loaded from LENDBOT_* environment variables and .env."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """SQLite storage location."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = "data/lendbot.db"


class SchedulerSettings(BaseSettings):
    """Intervals and failure policy for the periodic jobs.

    Every job has its own interval and enable flag; nothing ties them
    together. All fields configurable via SCHEDULER_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    snapshot_interval: float = 20 * 60  # seconds; drives freshness of all derived data
    rules_interval: float = 60 * 60
    analysis_interval: float = 30 * 60
    positions_interval: float = 30 * 60

    snapshot_enabled: bool = True
    rules_enabled: bool = True
    analysis_enabled: bool = True
    positions_enabled: bool = True

    # Delay after n failures: min(interval * factor**n, max(backoff_max_seconds, interval))
    backoff_factor: float = 2.0
    backoff_max_seconds: float = 4 * 60 * 60
    failure_alert_threshold: int = 5


class SnapshotSettings(BaseSettings):
    """Reserve snapshot retention."""

    model_config = SettingsConfigDict(env_prefix="SNAPSHOTS_")

    retention_days: int = 0  # 0 keeps every snapshot


class WalletSettings(BaseSettings):
    """Operator wallet and position bookkeeping policy."""

    model_config = SettingsConfigDict(env_prefix="WALLET_")

    home_address: str = ""  # only this wallet's positions are written back
    prune_closed_positions: bool = False


class ProviderSettings(BaseSettings):
    """Reserve provider wiring.

    ``classes`` holds ``module:Class`` paths, e.g.
    PROVIDERS_CLASSES='["mypkg.kamino:KaminoReserveProvider"]'.
    """

    model_config = SettingsConfigDict(env_prefix="PROVIDERS_")

    classes: list[str] = []
    call_timeout: float = 30.0


class LLMSettings(BaseSettings):
    """Text generation service settings."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    api_key: SecretStr = SecretStr("")
    base_url: str | None = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 2000
    timeout: float = 60.0


class PipelineSettings(BaseSettings):
    """Defaults for pipeline runs triggered by the scheduler."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    analysis_should_post: bool = True
    default_hours_to_predict: int = 6
    position_analysis_hours: int = 12


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    database: DatabaseSettings = DatabaseSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    snapshots: SnapshotSettings = SnapshotSettings()
    wallet: WalletSettings = WalletSettings()
    providers: ProviderSettings = ProviderSettings()
    llm: LLMSettings = LLMSettings()
    pipeline: PipelineSettings = PipelineSettings()
    api: ApiSettings = ApiSettings()
