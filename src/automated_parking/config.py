# File: src/automated_parking/config.py
"""
Application configuration and logging setup

Settings are a validated pydantic model. Defaults suit a local SQLite
database; every field can be overridden through a PARKING_* environment
variable (see ParkingConfig.from_env).
"""

from typing import Dict, List, Mapping, Optional, Any
from decimal import Decimal
import logging
import os
import sys

from pydantic import BaseModel, ConfigDict, Field, field_validator


ENV_PREFIX = "PARKING_"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class FloorLayout(BaseModel):
    """Provisioning layout of one floor"""
    model_config = ConfigDict(frozen=True)

    number: int = Field(ge=0)
    ceiling_height: Decimal = Field(gt=0)
    weight_capacity: Decimal = Field(gt=0)
    spaces: int = Field(default=10, ge=0)

    @classmethod
    def parse(cls, value: str) -> 'FloorLayout':
        """Parse 'number:ceiling_height:weight_capacity[:spaces]'"""
        parts = [part.strip() for part in value.split(':')]
        if len(parts) not in (3, 4):
            raise ValueError(
                f"Floor layout must be number:ceiling_height:weight_capacity[:spaces], got: {value}"
            )
        data: Dict[str, Any] = {
            "number": parts[0],
            "ceiling_height": parts[1],
            "weight_capacity": parts[2],
        }
        if len(parts) == 4:
            data["spaces"] = parts[3]
        return cls(**data)


def parse_floor_layouts(value: str) -> List[FloorLayout]:
    """Parse a comma separated list of floor layouts"""
    return [FloorLayout.parse(item) for item in value.split(',') if item.strip()]


class ParkingConfig(BaseModel):
    """Settings of the parking lot application"""

    model_config = ConfigDict(validate_default=True)

    database_url: str = "sqlite:///automated_parking.db"
    max_allocation_attempts: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=0.01, ge=0)
    bill_timestamp_format: str = "%d.%m.%Y %H:%M"
    currency_symbol: str = "€"
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    sql_echo: bool = False
    default_floors: List[FloorLayout] = Field(
        default_factory=lambda: parse_floor_layouts(
            "1:285:20000:10,2:130:20000:10,3:170:20000:10"
        )
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator('default_floors', mode='before')
    @classmethod
    def parse_default_floors(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_floor_layouts(value)
        return value

    @field_validator('default_floors')
    @classmethod
    def validate_unique_floor_numbers(cls, value: List[FloorLayout]) -> List[FloorLayout]:
        numbers = [floor.number for floor in value]
        if len(numbers) != len(set(numbers)):
            raise ValueError(f"Floor numbers must be unique: {numbers}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ParkingConfig':
        """Build a config from PARKING_* variables, unset ones keep their defaults"""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            if key in environ:
                values[name] = environ[key]
        return cls(**values)


def setup_logging(config: Optional[ParkingConfig] = None) -> logging.Logger:
    """Configure root logging with console output and an optional log file"""
    config = config or ParkingConfig()
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if config.log_dir:
        if not os.path.exists(config.log_dir):
            os.makedirs(config.log_dir)
        handlers.append(logging.FileHandler(os.path.join(config.log_dir, 'automated_parking.log')))

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    return logging.getLogger("automated_parking")
