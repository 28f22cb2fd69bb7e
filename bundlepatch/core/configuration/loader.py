from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..errors import ConfigurationDefect
from ..patch_engine.config import ArtifactSpec, EnginePolicy, InstallLayout, ManifestSpec
from ..patch_engine.definitions import PatchTable, patch_table_from_mapping

CONFIG_ENV = "BUNDLEPATCH_CONFIG"
CONFIG_NAME = "bundlepatch.yml"


# ──────────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────────
class ConfigError(RuntimeError):
    pass


# ──────────────────────────────────────────────────────────────────────────────
# Path resolution
# ──────────────────────────────────────────────────────────────────────────────
@dataclass
class ConfigPaths:
    config_file: Path
    config_dir: Path

    @staticmethod
    def detect(explicit: Optional[Path] = None) -> "ConfigPaths":
        """
        Resolve the settings file: explicit path, then $BUNDLEPATCH_CONFIG, then the
        first `config/bundlepatch.yml` found walking upward from the working
        directory and from this file's location.
        """
        if explicit is None and os.environ.get(CONFIG_ENV, "").strip():
            explicit = Path(os.environ[CONFIG_ENV].strip())
        if explicit is not None:
            p = explicit.expanduser().resolve()
            return ConfigPaths(config_file=p, config_dir=p.parent)

        for anchor in (Path.cwd().resolve(), Path(__file__).resolve().parent):
            cur = anchor
            for _ in range(12):
                candidate = cur / "config" / CONFIG_NAME
                if candidate.is_file():
                    return ConfigPaths(config_file=candidate, config_dir=candidate.parent)
                if cur.parent == cur:
                    break
                cur = cur.parent
        raise ConfigError(f"could not find config/{CONFIG_NAME}; pass --config or set {CONFIG_ENV}")


# ──────────────────────────────────────────────────────────────────────────────
# YAML helper
# ──────────────────────────────────────────────────────────────────────────────
def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML file is not a mapping: {path}")
    return data


def _section(data: Dict[str, Any], name: str, source: Path) -> Dict[str, Any]:
    val = data.get(name) or {}
    if not isinstance(val, dict):
        raise ConfigError(f"'{name}' section in {source} must be a mapping")
    return val


def _str_list(val: Any, what: str) -> List[str]:
    if val is None:
        return []
    if isinstance(val, str):
        return [val]
    if not isinstance(val, list) or not all(isinstance(v, str) for v in val):
        raise ConfigError(f"{what} must be a list of strings")
    return list(val)


def expand_path(raw: str) -> Path:
    """`~` and $VARS expanded; %VARS% too on Windows via os.path.expandvars."""
    return Path(os.path.expandvars(os.path.expanduser(raw)))


# ──────────────────────────────────────────────────────────────────────────────
# Settings (config/bundlepatch.yml)
# ──────────────────────────────────────────────────────────────────────────────
@dataclass
class SettingsToggle:
    path: str
    key: str
    value: Any


@dataclass
class Settings:
    source: Path
    layout: InstallLayout
    search_paths: List[str] = field(default_factory=list)
    cache_dirs: List[str] = field(default_factory=list)
    settings_toggle: Optional[SettingsToggle] = None
    patch_tables: Optional[Path] = None
    policy: EnginePolicy = field(default_factory=EnginePolicy)
    workers: int = 4

    def search_roots(self) -> List[Path]:
        return [expand_path(p) for p in self.search_paths]

    def cache_roots(self) -> List[Path]:
        return [expand_path(p) for p in self.cache_dirs]


def _layout(install: Dict[str, Any], source: Path) -> InstallLayout:
    raw_arts = install.get("artifacts") or []
    if not isinstance(raw_arts, list) or not raw_arts:
        raise ConfigError(f"install.artifacts in {source} must be a non-empty list")
    artifacts: List[ArtifactSpec] = []
    for i, a in enumerate(raw_arts):
        if not isinstance(a, dict) or not a.get("name") or not a.get("path"):
            raise ConfigError(f"install.artifacts[{i}] in {source} needs 'name' and 'path'")
        artifacts.append(ArtifactSpec(
            name=str(a["name"]),
            path=str(a["path"]),
            manifest_keys=_str_list(a.get("manifest_keys"), f"install.artifacts[{i}].manifest_keys"),
        ))

    manifest = None
    m = install.get("manifest")
    if m is not None:
        if not isinstance(m, dict) or not m.get("path"):
            raise ConfigError(f"install.manifest in {source} needs a 'path'")
        manifest = ManifestSpec(path=str(m["path"]), namespace=m.get("namespace") or None)
    return InstallLayout(artifacts=artifacts, manifest=manifest)


def load_settings(paths: Optional[ConfigPaths] = None) -> Settings:
    paths = paths or ConfigPaths.detect()
    if not paths.config_file.is_file():
        raise ConfigError(f"settings file not found: {paths.config_file}")
    data = _read_yaml(paths.config_file)

    install = _section(data, "install", paths.config_file)
    engine = _section(data, "engine", paths.config_file)

    toggle = None
    st = install.get("settings")
    if st is not None:
        if not isinstance(st, dict) or not st.get("path") or not st.get("key"):
            raise ConfigError(f"install.settings in {paths.config_file} needs 'path' and 'key'")
        toggle = SettingsToggle(path=str(st["path"]), key=str(st["key"]), value=st.get("value"))

    tables = data.get("patch_tables")
    policy = EnginePolicy(
        strict_drift=bool(engine.get("strict_drift", False)),
        fail_when_nothing_applicable=bool(engine.get("fail_when_nothing_applicable", True)),
        backup_timestamp_format=str(engine.get("backup_timestamp_format", EnginePolicy.backup_timestamp_format)),
    )

    try:
        workers = int(os.environ.get("BUNDLEPATCH_WORKERS", "").strip() or data.get("workers", 4))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"workers must be an integer: {e}") from e

    return Settings(
        source=paths.config_file,
        layout=_layout(install, paths.config_file),
        search_paths=_str_list(install.get("search_paths"), "install.search_paths"),
        cache_dirs=_str_list(install.get("cache_dirs"), "install.cache_dirs"),
        settings_toggle=toggle,
        patch_tables=(paths.config_dir / str(tables)).resolve() if tables else None,
        policy=EnginePolicy.from_env(policy),
        workers=max(1, workers),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Patch tables (config/patches/*.yml)
# ──────────────────────────────────────────────────────────────────────────────
def load_patch_table_file(path: Path) -> PatchTable:
    try:
        data = _read_yaml(path)
    except yaml.YAMLError as e:
        raise ConfigurationDefect(f"cannot parse patch table {path}: {e}") from e
    except ConfigError as e:
        raise ConfigurationDefect(str(e)) from e
    return patch_table_from_mapping(data, source=str(path))


def load_patch_tables(location: Path) -> PatchTable:
    """
    Load one table file, or every *.yml / *.yaml file of a directory in name
    order. Lineage order follows file order, then order within each file.
    """
    if location.is_file():
        return load_patch_table_file(location)
    if not location.is_dir():
        raise ConfigurationDefect(f"patch table location not found: {location}")
    files = sorted(p for p in location.iterdir() if p.is_file() and p.suffix in (".yml", ".yaml"))
    if not files:
        raise ConfigurationDefect(f"no patch tables in {location}")
    table = PatchTable()
    for f in files:
        table.merge(load_patch_table_file(f))
    return table


__all__ = [
    "ConfigError",
    "ConfigPaths",
    "Settings",
    "SettingsToggle",
    "expand_path",
    "load_settings",
    "load_patch_table_file",
    "load_patch_tables",
]
