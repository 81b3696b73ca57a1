"""Settings loading and validation for YAML-based trainctl configuration."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from trainctl.core.errors import ConfigLoadError, ConfigValidationError
from trainctl.core.model import (
    BackendKind,
    BleSettings,
    CharacteristicSpec,
    Field,
    GattProfile,
    Settings,
    SimulationSettings,
)

_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    warnings: tuple[str, ...]
    source: Path | None = None


def _load_schema_validator() -> Any:
    schema_text = resources.files("trainctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "trainctl/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def normalize_uuid(value: str, *, context: str) -> str:
    """Lowercase a 16/32/128-bit UUID and expand short forms onto the Bluetooth base UUID."""
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ConfigValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    if len(normalized) == 4:
        return f"0000{normalized}{_BASE_UUID_SUFFIX}"
    if len(normalized) == 8:
        return f"{normalized}{_BASE_UUID_SUFFIX}"
    return normalized


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def _build_profile(doc: dict[str, Any]) -> GattProfile:
    characteristics: dict[Field, CharacteristicSpec] = {}
    for field in Field:
        spec = doc["characteristics"][field.value]
        context = f"profile.characteristics.{field.value}"
        characteristics[field] = CharacteristicSpec(
            uuid=normalize_uuid(spec["uuid"], context=f"{context}.uuid"),
            write_with_response=_normalize_bool(
                spec.get("write_with_response", True),
                context=f"{context}.write_with_response",
            ),
        )

    uuids = [spec.uuid for spec in characteristics.values()]
    if len(set(uuids)) != len(uuids):
        raise ConfigValidationError("profile.characteristics must use distinct UUIDs")

    return GattProfile(
        service_uuid=normalize_uuid(doc["service_uuid"], context="profile.service_uuid"),
        characteristics=characteristics,
    )


def _build_settings(doc: dict[str, Any], source: Path | Traversable) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    ble = doc.get("ble", {})
    simulation = doc.get("simulation", {})
    return Settings(
        backend=BackendKind(doc["backend"]),
        profile=_build_profile(doc["profile"]),
        ble=BleSettings(
            connect_timeout_s=float(ble.get("connect_timeout_s", 10.0)),
            probe_timeout_s=float(ble.get("probe_timeout_s", 5.0)),
        ),
        simulation=SimulationSettings(
            seed=simulation.get("seed"),
            connect_delay_s=float(simulation.get("connect_delay_s", 0.5)),
            read_delay_s=float(simulation.get("read_delay_s", 0.05)),
            write_delay_s=float(simulation.get("write_delay_s", 0.1)),
            discovery_interval_s=float(simulation.get("discovery_interval_s", 5.0)),
            notify_interval_s=float(simulation.get("notify_interval_s", 2.0)),
        ),
        log_level=doc.get("log_level", "WARNING"),
    )


def load_settings() -> LoadedSettings:
    default_path = resources.files("trainctl.defaults").joinpath("config.yaml")
    doc = _read_yaml(default_path)
    warnings: list[str] = []

    source = user_config_path()
    if not source.is_file():
        return LoadedSettings(settings=_build_settings(doc, default_path), warnings=())

    user_doc = _read_yaml(source)
    if "profile" in user_doc:
        warning = f"User settings {source} override the packaged GATT profile"
        LOGGER.warning(warning)
        warnings.append(warning)
    settings = _build_settings(_merge(doc, user_doc), source)
    return LoadedSettings(settings=settings, warnings=tuple(warnings), source=source)
