#deployment_engine\config.py

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from deployment_engine.monitoring.health import HealthPenalties


class EngineSettings(BaseSettings):
    """Engine configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DEPLOY_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Recovery
    max_recovery_attempts: int = 3
    pipeline_timeout_seconds: Optional[float] = 3600.0

    # Monitor timers
    health_check_interval_seconds: float = 60.0
    zombie_detection_interval_seconds: float = 300.0

    # Zombie detection
    zombie_failed_dwell_seconds: float = 3600.0
    zombie_abandoned_seconds: float = 7200.0
    zombie_assumed_monthly_cost: float = 24.0

    # Cost model
    downtime_hourly_cost: float = 0.10
    replacement_server_monthly_cost: float = 24.0
    default_server_monthly_cost: float = 24.0
    default_server_hourly_cost: float = 0.036

    # Health penalties
    cpu_threshold: float = 80.0
    cpu_penalty: float = 2.0
    memory_threshold: float = 85.0
    memory_penalty: float = 3.0
    disk_threshold: float = 90.0
    disk_penalty: float = 5.0
    failed_service_penalty: float = 15.0
    probe_fail_penalty: float = 20.0
    probe_timeout_penalty: float = 10.0

    # Health probe
    probe_cpu_limit: float = 90.0
    probe_memory_limit: float = 95.0
    probe_disk_limit: float = 90.0
    probe_timeout_seconds: float = 5.0

    # Remote agents (service name -> base url)
    agent_urls: Dict[str, str] = Field(default_factory=lambda: {
        "repository_analysis": "http://localhost:5001",
        "infrastructure": "http://localhost:5002",
        "credentials": "http://localhost:5003",
        "deployment": "http://localhost:5004",
    })
    agent_request_timeout_seconds: float = 120.0

    # Reasoning service
    reasoning_url: str = "http://localhost:5010/diagnose"
    reasoning_timeout_seconds: float = 60.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    log_level: str = "INFO"

    def health_penalties(self) -> HealthPenalties:
        return HealthPenalties(
            cpu_threshold=self.cpu_threshold,
            cpu_penalty=self.cpu_penalty,
            memory_threshold=self.memory_threshold,
            memory_penalty=self.memory_penalty,
            disk_threshold=self.disk_threshold,
            disk_penalty=self.disk_penalty,
            failed_service_penalty=self.failed_service_penalty,
            probe_fail_penalty=self.probe_fail_penalty,
            probe_timeout_penalty=self.probe_timeout_penalty,
        )


settings = EngineSettings()
