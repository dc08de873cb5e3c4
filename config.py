"""
FILE: config.py
DESCRIPTION:
  Settings for the sensor hub, read once at startup from a YAML file.
  Values can be overridden via environment variables named after the
  fields (HUB_MQTT__HOST, HUB_MQTT__PREFIX, HUB_BLE__PREFIX, ...). File keys
  are case-insensitive and may use the aliases (broker, preffix, mqtt-suffix).
  The loaded Settings object is frozen and handed to every component.
"""
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils import parse_address, parse_duration

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")

# Seconds; accepts 30, "30s", "1m30s", "500ms"
Duration = Annotated[float, BeforeValidator(parse_duration)]
Address = Annotated[int, BeforeValidator(parse_address)]


class ConfigError(Exception):
    """Config file missing, malformed, or failed validation."""


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class MqttSettings(_Section):
    host: str = Field(
        default="localhost",
        validation_alias=AliasChoices("host", "broker"),
        description="MQTT broker hostname or IP",
    )
    port: int = Field(default=1883, description="MQTT broker port")
    user: str = Field(default="", description="MQTT username")
    password: str = Field(
        default="",
        validation_alias=AliasChoices("password", "pass"),
        description="MQTT password",
    )
    keepalive: int = Field(default=60, description="MQTT keepalive interval in seconds")
    client_id: str = Field(
        default="rpi",
        validation_alias=AliasChoices("client_id", "id"),
        description="MQTT client identifier",
    )
    lwt: str = Field(default="", description="Last-will topic ('0'/'1' retained). Empty disables it")
    prefix: str = Field(
        default="",
        validation_alias=AliasChoices("prefix", "preffix"),
        description="Prepended to every sensor topic",
    )
    heartbeat: bool = Field(default=True, description="Publish <prefix>heartbeat periodically")
    heartbeat_interval: Duration = Field(default=60.0, gt=0)


class Bme280Settings(_Section):
    enabled: bool = True
    interval: Duration = Field(default=60.0, gt=0)
    address: Address = Field(default=0x76, description="I2C address of the BME280")
    bus: int = Field(default=1, description="I2C bus number")


class BleSettings(_Section):
    enabled: bool = True
    interval: Duration = Field(default=30.0, gt=0)
    duration: Duration = Field(default=10.0, gt=0, description="Length of each scan")
    prefix: str = Field(
        default="",
        validation_alias=AliasChoices("prefix", "mqtt_preffix", "mqtt-preffix", "mqtt_prefix"),
    )
    known_devices: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("known_devices", "known-devices"),
        description="Advertiser addresses reported as 'home'",
    )

    @model_validator(mode="after")
    def _scan_fits_interval(self):
        if self.duration > self.interval:
            raise ValueError(
                f"ble.duration ({self.duration}s) must not exceed ble.interval ({self.interval}s)"
            )
        return self


class PirSettings(_Section):
    enabled: bool = True
    pin: str = Field(default="7", description="Header pin number, or any gpiozero pin name")
    suffix: str = Field(
        default="motion",
        validation_alias=AliasChoices("suffix", "mqtt_suffix", "mqtt-suffix"),
    )

    @field_validator("pin", mode="before")
    @classmethod
    def _pin_as_text(cls, value):
        return str(value)


class Mhz19Settings(_Section):
    enabled: bool = False
    interval: Duration = Field(default=60.0, gt=0)
    suffix: str = Field(
        default="co2",
        validation_alias=AliasChoices("suffix", "mqtt_suffix", "mqtt-suffix"),
    )
    port: str = Field(default="/dev/serial0", description="Serial device of the MH-Z19")
    baudrate: int = 9600
    timeout: Duration = Field(default=1.0, gt=0, description="Serial read timeout")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="HUB_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    mqtt: MqttSettings = Field(default_factory=MqttSettings)
    bme280: Bme280Settings = Field(default_factory=Bme280Settings)
    ble: BleSettings = Field(default_factory=BleSettings)
    pir: PirSettings = Field(default_factory=PirSettings)
    mhz19: Mhz19Settings = Field(default_factory=Mhz19Settings)

    debug: bool = Field(default=False, description="Log every outgoing publish")

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # Environment beats the file contents passed in as init kwargs
        return env_settings, init_settings

    def topic(self, suffix):
        """Prefix-relative topic name."""
        return f"{self.mqtt.prefix}{suffix}"


def canonical_keys(model, data):
    """
    Lower-cases keys and renames aliases to field names, recursing into
    sections. The field name wins over an alias when both are present.
    """
    data = {str(key).lower(): value for key, value in data.items()}
    for name, field in model.model_fields.items():
        alias = field.validation_alias
        choices = alias.choices if isinstance(alias, AliasChoices) else []
        for choice in choices:
            if choice != name and choice in data:
                value = data.pop(choice)
                data.setdefault(name, value)

        section = field.annotation
        if isinstance(section, type) and issubclass(section, BaseModel) and isinstance(data.get(name), dict):
            data[name] = canonical_keys(section, data[name])
    return data


def find_config_file(name, search_dir="."):
    """Resolves the --config value the same way for a full path or a bare name."""
    direct = Path(name)
    if direct.is_file():
        return direct
    for ext in CONFIG_EXTENSIONS:
        candidate = Path(search_dir) / f"{name}{ext}"
        if candidate.is_file():
            return candidate
    return None


def load_settings(name="config", search_dir="."):
    path = find_config_file(name, search_dir)
    if path is None:
        raise ConfigError(
            f"Config file '{name}' not found (tried {', '.join(name + e for e in CONFIG_EXTENSIONS)})"
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading config file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    try:
        # Env vars use field names, so the file must too for them to override it
        return Settings(**canonical_keys(Settings, raw))
    except ValidationError as e:
        raise ConfigError(f"Error decoding config file {path}: {e}") from e
