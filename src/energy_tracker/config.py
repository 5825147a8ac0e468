"""Configuration loading and validation using Pydantic."""

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


def expand_env_vars(value: str) -> str:
    """Expand ${VAR} style environment variables in a string."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return pattern.sub(replacer, value)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: Path | str = Field(default=Path("./instance/energy.db"))

    @field_validator("path", mode="before")
    @classmethod
    def expand_env(cls, v):
        """Expand environment variables in connection URLs."""
        if isinstance(v, str):
            v = expand_env_vars(v)
            if "://" not in v:
                return Path(v)
        return v


class SmtpConfig(BaseModel):
    """SMTP server configuration."""

    host: str
    port: int = 587
    use_tls: bool = True
    username: str = ""
    password: str = ""

    @field_validator("username", "password", mode="before")
    @classmethod
    def expand_env(cls, v: str) -> str:
        """Expand environment variables in credentials."""
        if isinstance(v, str):
            return expand_env_vars(v)
        return v


class EmailConfig(BaseModel):
    """Email sending configuration."""

    from_address: str
    from_name: str = "Energy Tracker"
    subject_template: str = "Energy Cost Report - Competence {competence}"


class ReportConfig(BaseModel):
    """Report rendering options."""

    title: str = "Energy Cost Report"
    organization_name: str = "Energy Tracker"
    logo_url: str = ""


class OutputConfig(BaseModel):
    """Output directory configuration."""

    email_dir: Path = Field(default=Path("./instance/output/emails"))  # For dev mode


class LoggingConfig(BaseModel):
    """Logging configuration."""

    enabled: bool = True
    level: Literal["DEBUG", "INFO", "WARN", "WARNING", "ERROR"] = "INFO"
    format: Literal["splunk", "json"] = "splunk"
    file: Path | None = None


class WebConfig(BaseModel):
    """Web server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class BootstrapAdminConfig(BaseModel):
    """Administrator seeded when the database is first initialized."""

    name: str = "Admin"
    email: str = "admin@example.com"


class Config(BaseModel):
    """Root configuration model."""

    dev_mode: bool = False  # When true, emails go to files instead of SMTP
    currency: str = "R$"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    smtp: SmtpConfig | None = None
    email: EmailConfig | None = None
    report: ReportConfig = Field(default_factory=ReportConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    bootstrap_admin: BootstrapAdminConfig = Field(default_factory=BootstrapAdminConfig)

    @property
    def can_send_email(self) -> bool:
        """True when reports can be delivered (dev mode or SMTP configured)."""
        if self.email is None:
            return False
        return self.dev_mode or self.smtp is not None


CONFIG_ENV_VAR = "ENERGY_TRACKER_CONFIG"
DEFAULT_CONFIG_PATH = Path("instance/config.yaml")


def default_config_path() -> Path:
    """Config file named by ENERGY_TRACKER_CONFIG, else instance/config.yaml."""
    from_env = os.environ.get(CONFIG_ENV_VAR)
    return Path(from_env) if from_env else DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from a YAML file.

    A missing file yields the defaults, so a fresh checkout runs in place.

    Raises:
        ValidationError: If config is invalid.
    """
    path = Path(config_path) if config_path is not None else default_config_path()
    if not path.exists():
        return Config()

    raw_config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return Config.model_validate(raw_config)


def ensure_directories(config: Config) -> None:
    """Create the database, email sink and log directories."""
    directories = [config.output.email_dir] if config.dev_mode else []
    if isinstance(config.database.path, Path):
        directories.append(config.database.path.parent)
    if config.logging.file:
        directories.append(config.logging.file.parent)

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)
