"""Loading and validation of YAML printer profiles, store settings, and orders."""

from __future__ import annotations

import json
import logging
import math
import os
import re
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from thermalctl.core.errors import ConfigLoadError, ConfigValidationError
from thermalctl.core.model import (
    Layout,
    MatchRules,
    Order,
    OrderLine,
    Pacing,
    PrinterProfile,
    StoreSettings,
    TransportSpec,
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
class LoadedProfiles:
    profiles: dict[str, PrinterProfile]
    warnings: tuple[str, ...]


@lru_cache(maxsize=None)
def _load_schema_validator(name: str) -> Any:
    schema_text = resources.files("thermalctl.schemas").joinpath(f"{name}.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _validate(doc: dict[str, Any], schema: str, source: Path | Traversable | str) -> None:
    try:
        _load_schema_validator(schema).validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _config_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "thermalctl", xdg_data / "thermalctl"


def settings_path() -> Path:
    return _config_dirs()[0] / "settings.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at root")
    return loaded


def _normalize_mac_prefix(prefix: str) -> str:
    return prefix.strip().upper()


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ConfigValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    if len(normalized) == 4:
        normalized = "0000" + normalized
    if len(normalized) == 8:
        normalized += _BASE_UUID_SUFFIX
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


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> PrinterProfile:
    _validate(doc, "profile", source)

    profile_id = doc["id"]
    raw_transport = doc["transport"]
    defaults = TransportSpec()
    transport = TransportSpec(
        service_uuid=_normalize_uuid(
            raw_transport["service_uuid"],
            context=f"{profile_id}.transport.service_uuid",
        ),
        write_char_uuid=_normalize_uuid(
            raw_transport["write_char_uuid"],
            context=f"{profile_id}.transport.write_char_uuid",
        ),
        write_with_response=_normalize_bool(
            raw_transport.get("write_with_response", defaults.write_with_response),
            context=f"{profile_id}.transport.write_with_response",
        ),
        timeout_s=float(raw_transport.get("timeout_s", defaults.timeout_s)),
        chunk_size=int(raw_transport.get("chunk_size", defaults.chunk_size)),
        write_attempts=int(raw_transport.get("write_attempts", defaults.write_attempts)),
    )

    raw_layout = doc.get("layout", {})
    layout = Layout(**{f.name: int(raw_layout[f.name]) for f in fields(Layout) if f.name in raw_layout})
    raw_pacing = doc.get("pacing", {})
    pacing = Pacing(**{f.name: float(raw_pacing[f.name]) for f in fields(Pacing) if f.name in raw_pacing})

    return PrinterProfile(
        id=profile_id,
        name=doc["name"],
        match=MatchRules(
            name_contains=tuple(doc["match"].get("name_contains", [])),
            mac_prefix=tuple(_normalize_mac_prefix(p) for p in doc["match"].get("mac_prefix", [])),
        ),
        transport=transport,
        layout=layout,
        pacing=pacing,
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("thermalctl.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for base in _config_dirs():
        directory = base / "profiles"
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, PrinterProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        profile = _build_profile(_read_yaml(path), path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        profile = _build_profile(_read_yaml(path), path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))


def _parse_tax_rate(value: Any, default: float) -> float:
    try:
        parsed = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except ValueError:
        parsed = math.nan
    if not math.isfinite(parsed):
        LOGGER.warning("Ignoring non-numeric tax_rate %r, using %s", value, default)
        return default
    return parsed


def load_settings(path: Path | None = None) -> StoreSettings:
    """Read store settings, falling back to defaults for anything missing."""
    path = path or settings_path()
    defaults = StoreSettings()
    if not path.exists():
        LOGGER.debug("No settings file at %s, using defaults", path)
        return defaults

    doc = _read_yaml(path)
    _validate(doc, "settings", path)

    values: dict[str, Any] = {}
    for key, value in doc.items():
        if key == "tax_rate":
            values[key] = _parse_tax_rate(value, defaults.tax_rate)
        elif key == "auto_print_receipt":
            values[key] = _normalize_bool(value, context=f"{path}.auto_print_receipt")
        else:
            values[key] = str(value)
    return replace(defaults, **values)


def load_order(path: Path) -> Order:
    """Read a YAML or JSON order document."""
    doc = _read_yaml(path)
    _validate(doc, "order", path)
    table = doc.get("table_number")
    return Order(
        items=tuple(
            OrderLine(name=item["name"], quantity=int(item["quantity"]), price=item["price"])
            for item in doc["items"]
        ),
        payment_method=doc["payment_method"],
        customer_name=doc.get("customer_name"),
        table_number=str(table) if table is not None else None,
        cashier=doc.get("cashier"),
        receipt_number=doc.get("receipt_number"),
    )
