"""
Configuration for the Thai Smart Card Bridge
============================================
Loaded once at startup from config.toml (see the sample in the repo root),
with secrets optionally supplied through environment variables or `.env`.

Search order:
1. Path given on the command line
2. SMART_CARD_CONFIG environment variable
3. ./config.toml
4. Built-in defaults
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from readers.apdu import APDU

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SMART_CARD_CONFIG"
CONFIG_FILENAME = "config.toml"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8182


class ConfigError(Exception):
    """Configuration file could not be read or holds invalid values"""


def split_csv(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


class _Section(BaseModel):
    # Lists must be TOML arrays: a bare string never stands in for a list
    model_config = ConfigDict(frozen=True, extra="ignore")


class ServerConfig(_Section):
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=0, le=65535)
    cors_allow_all: bool = True
    allowed_origins: Tuple[str, ...] = ()
    enable_tls: bool = False
    tls_cert_path: str = "cert.pem"
    tls_key_path: str = "key.pem"

    @property
    def websocket_url(self) -> str:
        scheme = "wss" if self.enable_tls else "ws"
        return f"{scheme}://{self.host}:{self.port}/"


class SecurityConfig(_Section):
    enable_authentication: bool = False
    api_keys: Tuple[str, ...] = ()
    api_key_header: str = "X-API-Key"

    enable_rate_limiting: bool = True
    rate_limit_requests: int = Field(60, ge=1)
    rate_limit_window_secs: int = Field(60, ge=1)
    rate_limit_max_connections: int = Field(5, ge=1)
    rate_limit_cleanup_interval_secs: int = Field(300, ge=1)
    rate_limit_cleanup_threshold_secs: int = Field(600, ge=1)

    enable_audit_logging: bool = True

    enable_encryption: bool = False
    encryption_key: str = ""
    # Empty with encryption enabled means every field is encrypted
    encrypted_fields: Tuple[str, ...] = ()

    def should_encrypt_field(self, *names: str) -> bool:
        if not self.enable_encryption:
            return False
        if not self.encrypted_fields:
            return True
        return any(name in self.encrypted_fields for name in names)


class OutputConfig(_Section):
    include_photo: bool = True
    # original name -> output name
    field_mapping: Dict[str, str] = Field(default_factory=dict)
    # empty = all fields
    enabled_fields: Tuple[str, ...] = ()

    def is_field_enabled(self, name: str) -> bool:
        return not self.enabled_fields or name in self.enabled_fields

    def get_field_name(self, original: str) -> str:
        return self.field_mapping.get(original, original)


class ApduCommand(_Section):
    name: str
    apdu: str
    # A failed read of an optional field yields an empty value
    required: bool = True

    def to_bytes(self) -> List[int]:
        return APDU.from_hex(self.apdu)


DEFAULT_FIELDS = (
    ApduCommand(name="citizen_id", apdu="80B0000402000D"),
    ApduCommand(name="full_name_th", apdu="80B00011020064"),
    ApduCommand(name="full_name_en", apdu="80B00075020064"),
    ApduCommand(name="date_of_birth", apdu="80B000D9020008"),
    ApduCommand(name="gender", apdu="80B000E1020001"),
    ApduCommand(name="card_issuer", apdu="80B000F6020064", required=False),
    ApduCommand(name="issue_date", apdu="80B00167020008"),
    ApduCommand(name="expire_date", apdu="80B0016F020008"),
    ApduCommand(name="address", apdu="80B01579020064", required=False),
)

# 20 chunks of 255 bytes, offsets 0x017B + n * 0xFF
DEFAULT_PHOTO_CHUNKS = tuple(
    f"80B0{0x017B + i * 0xFF:04X}0200FF" for i in range(20)
)


class CardConfig(_Section):
    select_apdu: str = "00A4040008A000000054480001"
    fields: Tuple[ApduCommand, ...] = DEFAULT_FIELDS
    photo_chunks: Tuple[str, ...] = DEFAULT_PHOTO_CHUNKS
    retry_attempts: int = Field(3, ge=1)
    retry_delay_ms: int = Field(500, ge=0)
    card_settle_delay_ms: int = Field(500, ge=0)

    def select_apdu_bytes(self) -> List[int]:
        return APDU.from_hex(self.select_apdu)

    def photo_chunk_bytes(self) -> List[List[int]]:
        return [APDU.from_hex(chunk) for chunk in self.photo_chunks]

    def get_field(self, name: str) -> Optional[ApduCommand]:
        for command in self.fields:
            if command.name == name:
                return command
        return None


class MonitorConfig(_Section):
    session_retry_delay_ms: int = Field(2000, ge=0)
    status_timeout_ms: int = Field(2000, ge=0)
    no_reader_delay_ms: int = Field(1000, ge=0)
    poll_interval_ms: int = Field(500, ge=0)
    read_attempts: int = Field(3, ge=1)
    read_retry_delay_ms: int = Field(300, ge=0)


class LoggingConfig(_Section):
    level: str = "INFO"
    file: str = "card_bridge.log"


class AppConfig(_Section):
    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    card: CardConfig = Field(default_factory=CardConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvironmentSettings(BaseSettings):
    """Secrets and the config path, read from the environment or `.env`"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    smart_card_config: str = ""
    encryption_key: str = ""
    # Comma separated
    api_keys: str = ""
    allowed_origins: str = ""


def read_environment(environ: Optional[Mapping[str, str]] = None) -> EnvironmentSettings:
    """Environment settings, from the process or from an explicit mapping"""
    if environ is None:
        return EnvironmentSettings()
    return EnvironmentSettings(**{
        name: environ.get(name.upper(), "") for name in EnvironmentSettings.model_fields
    })


# =============================================================================
# Loading
# =============================================================================

def _warn_unknown_keys(data: Dict[str, Any]):
    for name, values in data.items():
        section = AppConfig.model_fields.get(name)
        if section is None:
            logger.warning(f"Unknown config section [{name}] ignored")
            continue
        if not isinstance(values, dict):
            continue
        known = section.annotation.model_fields
        for key in values:
            if key not in known:
                logger.warning(f"Unknown config key [{name}] {key} ignored")


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def parse_config(data: Dict[str, Any]) -> AppConfig:
    """Build AppConfig from an already parsed TOML document"""
    _warn_unknown_keys(data)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_describe(e)}") from e


def apply_environment(config: AppConfig, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Fill secrets left empty in the file from the environment"""
    env = read_environment(environ)
    security = config.security
    server = config.server

    if not security.encryption_key and env.encryption_key.strip():
        security = security.model_copy(update={"encryption_key": env.encryption_key.strip()})
    if not security.api_keys and split_csv(env.api_keys):
        security = security.model_copy(update={"api_keys": split_csv(env.api_keys)})
    if not server.allowed_origins and split_csv(env.allowed_origins):
        server = server.model_copy(update={"allowed_origins": split_csv(env.allowed_origins)})

    return config.model_copy(update={"security": security, "server": server})


def load_from_file(path: Path) -> AppConfig:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config {path}: {e}") from e
    return parse_config(data)


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load configuration.

    An explicit `path` must exist and parse; discovered files fall back to
    defaults with a warning.
    """
    if path:
        logger.info(f"Loading config from: {path}")
        return apply_environment(load_from_file(Path(path)), environ)

    candidates = []
    env_path = read_environment(environ).smart_card_config
    if env_path:
        candidates.append(Path(env_path))
    candidates.append(Path(CONFIG_FILENAME))

    for candidate in candidates:
        if not candidate.exists():
            continue
        logger.info(f"Loading config from: {candidate}")
        try:
            return apply_environment(load_from_file(candidate), environ)
        except ConfigError as e:
            logger.warning(f"{e}, using defaults")
            break

    logger.info("Using default configuration")
    return apply_environment(AppConfig(), environ)
