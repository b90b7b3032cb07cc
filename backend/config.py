import os
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"], env_file_encoding="utf-8", extra="ignore"
    )

    # Content root served by the web server
    CONTENT_ROOT: str = "/var/www/hitl"
    HEALTH_SNAPSHOT_PATH: str = ""  # defaults to {CONTENT_ROOT}/health-detailed
    SYNC_MARKER_PATH: str = ""  # defaults to {CONTENT_ROOT}/.last-sync

    # Instance metadata service (IMDSv2)
    METADATA_BASE_URL: str = "http://169.254.169.254/latest"
    METADATA_TOKEN_TTL_SECONDS: int = 21600
    METADATA_TIMEOUT: float = 1.0  # seconds

    # Health reporter
    REPORTER_INTERVAL_SECONDS: int = 60
    WEB_SERVER_UNIT: str = "openresty"
    WEB_SERVER_BINARY: str = "/usr/local/openresty/nginx/sbin/nginx"
    WEB_SERVER_PROBE_URL: str = "http://127.0.0.1/health"
    WEB_SERVER_PROBE_TIMEOUT: float = 2.0  # seconds
    DISK_PATH: str = "/"

    # Labels published in the snapshot's environment block
    ENVIRONMENT: str = "dev"
    PROJECT_NAME: str = "hitl"
    S3_BUCKET: str = "unknown"

    # Node API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    CORS_ORIGINS: str = "*"
    RUN_REPORTER_IN_API: bool = True  # Run the reporter loop inside the API process

    # Status dashboard
    DASHBOARD_BASE_URL: str = "http://localhost:8080"
    DASHBOARD_POLL_INTERVAL: float = 30.0  # seconds
    DASHBOARD_HTTP_TIMEOUT: float = 5.0  # seconds

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True  # Set to False for human-readable console output during development

    @model_validator(mode="after")
    def compute_paths(self):
        """Derive snapshot and marker paths from CONTENT_ROOT if not explicitly provided"""
        if not self.HEALTH_SNAPSHOT_PATH:
            self.HEALTH_SNAPSHOT_PATH = os.path.join(self.CONTENT_ROOT, "health-detailed")
        if not self.SYNC_MARKER_PATH:
            self.SYNC_MARKER_PATH = os.path.join(self.CONTENT_ROOT, ".last-sync")
        return self

    @property
    def cors_origin_list(self) -> List[str]:
        """CORS origins as a list, split from the comma-separated setting"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
