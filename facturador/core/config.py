"""
FACTURADOR-DIAN Core Configuration
Simulation parameters and application settings.
"""

from dataclasses import dataclass

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class SimulationConfig:
    """Delay window (ms) and rejection probability shared by the simulators."""
    delay_min_ms: int = 1000
    delay_max_ms: int = 3000
    error_rate: float = 0.05

    def __post_init__(self):
        if self.delay_min_ms < 0 or self.delay_max_ms < 0:
            raise ValueError("Simulation delays must be non-negative")
        if self.delay_min_ms > self.delay_max_ms:
            raise ValueError(
                f"SIMULATION_DELAY_MIN ({self.delay_min_ms}) is greater than "
                f"SIMULATION_DELAY_MAX ({self.delay_max_ms})"
            )
        if not 0.0 <= self.error_rate <= 1.0:
            raise ValueError(f"SIMULATION_ERROR_RATE must be within [0, 1], got {self.error_rate}")


class Settings(BaseSettings):
    app_name: str = "FACTURADOR-DIAN"
    app_version: str = "1.0.0"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000

    database_url: str = "sqlite:///./facturador.db"

    jwt_secret: str = "your_jwt_secret_key_here"
    jwt_algorithm: str = "HS256"

    simulation_delay_min: int = Field(1000, ge=0)
    simulation_delay_max: int = Field(3000, ge=0)
    simulation_error_rate: float = 0.05

    # Fire-and-poll handlers (validate-xml / send-invoice)
    validation_processing_delay_ms: int = 2000
    send_processing_delay_ms: int = 3000

    process_ttl_seconds: int = 3600
    process_max_entries: int = 1000
    process_cleanup_interval_seconds: int = 300

    rate_limit: str = "120/minute"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("simulation_error_rate")
    @classmethod
    def _error_rate_in_range(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("SIMULATION_ERROR_RATE must be within [0, 1]")
        return value

    @model_validator(mode="after")
    def _delay_window_ordered(self) -> "Settings":
        if self.simulation_delay_min > self.simulation_delay_max:
            raise ValueError(
                f"SIMULATION_DELAY_MIN ({self.simulation_delay_min}) is greater than "
                f"SIMULATION_DELAY_MAX ({self.simulation_delay_max})"
            )
        return self

    def simulation_config(self) -> SimulationConfig:
        return SimulationConfig(
            delay_min_ms=self.simulation_delay_min,
            delay_max_ms=self.simulation_delay_max,
            error_rate=self.simulation_error_rate,
        )


settings = Settings()
