"""Configuration loading for seikyu."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import tomli

logger = logging.getLogger("seikyu.config")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"           # INFO or DEBUG
    output: str = "console"       # console, file, or both
    file: str = ""                # log file path
    rotate: bool = True           # enable rotation
    max_size_mb: int = 10         # max file size before rotation
    backup_count: int = 5         # rotated files to keep
    levels: dict[str, str] = field(default_factory=dict)  # per-module, e.g. {"storage": "DEBUG"}


@dataclass
class NextcloudConfig:
    url: str = ""
    username: str = ""
    app_password: str = ""


@dataclass
class EmailConfig:
    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_addr: str = ""  # defaults to smtp_user if empty

    @property
    def effective_from_addr(self) -> str:
        return self.from_addr or self.smtp_user


@dataclass
class ConverterConfig:
    """Remote LibreOffice conversion service (primary PDF export path)."""
    url: str = ""          # e.g. "https://convert.example.com"; empty = local export only
    username: str = ""     # basic auth
    password: str = ""
    timeout: float = 60.0


@dataclass
class OfficeConfig:
    """Local LibreOffice used for recalculation and the fallback PDF export."""
    binary: str = "libreoffice"
    timeout: int = 120


@dataclass
class SchedulerConfig:
    poll_interval: int = 60  # seconds between trigger checks in daemon mode
    trigger_hour: int = 9    # hour of day for the daily trigger


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path("data/seikyu.db"))
    timezone: str = "Asia/Tokyo"  # business timezone for "today"
    temp_dir: Path = field(default_factory=lambda: Path("/tmp/seikyu"))
    nextcloud_mount_path: Path | None = None  # If set, use mount instead of WebDAV
    nextcloud: NextcloudConfig = field(default_factory=NextcloudConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    converter: ConverterConfig = field(default_factory=ConverterConfig)
    office: OfficeConfig = field(default_factory=OfficeConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def use_mount(self) -> bool:
        """Whether to use local mount instead of WebDAV."""
        return self.nextcloud_mount_path is not None

    @property
    def webdav_url(self) -> str:
        """WebDAV files root for the configured Nextcloud user."""
        if not self.nextcloud.url:
            return ""
        base = self.nextcloud.url.rstrip("/")
        return f"{base}/remote.php/dav/files/{self.nextcloud.username}"


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML file."""
    if config_path is None:
        # Look for config in standard locations
        candidates = [
            Path("config/config.toml"),
            Path.home() / ".config/seikyu/config.toml",
            Path("/etc/seikyu/config.toml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None or not config_path.exists():
        # Return default config
        config = Config()
        _apply_env_overrides(config)
        return config

    with open(config_path, "rb") as f:
        data = tomli.load(f)

    config = Config()

    if "db_path" in data:
        config.db_path = Path(data["db_path"])

    if "timezone" in data:
        config.timezone = data["timezone"]

    if "temp_dir" in data:
        config.temp_dir = Path(data["temp_dir"])

    if "nextcloud_mount_path" in data:
        config.nextcloud_mount_path = Path(data["nextcloud_mount_path"])

    if "nextcloud" in data:
        nc = data["nextcloud"]
        config.nextcloud = NextcloudConfig(
            url=nc.get("url", ""),
            username=nc.get("username", ""),
            app_password=nc.get("app_password", ""),
        )

    if "email" in data:
        email = data["email"]
        config.email = EmailConfig(
            enabled=email.get("enabled", False),
            smtp_host=email.get("smtp_host", ""),
            smtp_port=email.get("smtp_port", 587),
            smtp_user=email.get("smtp_user", ""),
            smtp_password=email.get("smtp_password", ""),
            from_addr=email.get("from_addr", ""),
        )

    if "converter" in data:
        conv = data["converter"]
        config.converter = ConverterConfig(
            url=conv.get("url", ""),
            username=conv.get("username", ""),
            password=conv.get("password", ""),
            timeout=conv.get("timeout", 60.0),
        )

    if "office" in data:
        office = data["office"]
        config.office = OfficeConfig(
            binary=office.get("binary", "libreoffice"),
            timeout=office.get("timeout", 120),
        )

    if "scheduler" in data:
        sched = data["scheduler"]
        config.scheduler = SchedulerConfig(
            poll_interval=sched.get("poll_interval", 60),
            trigger_hour=sched.get("trigger_hour", 9),
        )

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", "INFO"),
            output=log.get("output", "console"),
            file=log.get("file", ""),
            rotate=log.get("rotate", True),
            max_size_mb=log.get("max_size_mb", 10),
            backup_count=log.get("backup_count", 5),
            levels=dict(log.get("levels", {})),
        )

    _apply_env_overrides(config)
    logger.debug("Loaded config from %s", config_path)
    return config


def _apply_env_overrides(config: Config) -> None:
    """Environment variable overrides for secrets (allows EnvironmentFile= usage)."""
    _env_secret_overrides = [
        ("SEIKYU_NC_APP_PASSWORD", "nextcloud", "app_password"),
        ("SEIKYU_SMTP_PASSWORD", "email", "smtp_password"),
        ("SEIKYU_CONVERTER_PASSWORD", "converter", "password"),
    ]
    for env_var, section, field_name in _env_secret_overrides:
        val = os.environ.get(env_var)
        if val:
            setattr(getattr(config, section), field_name, val)
