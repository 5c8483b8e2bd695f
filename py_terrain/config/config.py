from pathlib import Path
from dotenv import dotenv_values
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import os

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Terrain synthesis settings pulled from environment variables."""

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Sparse Solver Configuration
    solver_atol: float = Field(default=1e-8, description="LSQR stopping tolerance on the residual")
    solver_btol: float = Field(default=1e-8, description="LSQR stopping tolerance on the right-hand side")
    solver_max_iterations: int = Field(default=10000, description="Hard cap on LSQR iterations")

    # Geographic Configuration
    degrees_to_meters: float = Field(
        default=110000.0, description="Approximate metres per degree of geographic pixel scale"
    )

    # Feature Extraction Configuration
    default_grid_spacing: int = Field(default=10, description="Default downsample factor for feature extraction")
    default_profile_length: int = Field(default=7, description="Default crest profile length (odd)")
    smoothing_self_weight: float = Field(
        default=1.01, description="Multiplier on a node's own weight during position smoothing"
    )

    model_config = SettingsConfigDict(
        env_prefix="PY_TERRAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("solver_max_iterations", "default_grid_spacing")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("default_profile_length")
    @classmethod
    def _odd_profile(cls, value: int) -> int:
        if value < 3 or value % 2 == 0:
            raise ValueError("profile length must be odd and at least 3")
        return value

    @field_validator("smoothing_self_weight")
    @classmethod
    def _above_one(cls, value: float) -> float:
        if value <= 1.0:
            raise ValueError("self weight must be greater than 1")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("log format must be 'json' or 'console'")
        return value


# Instantiate singleton settings object
settings = Settings()
