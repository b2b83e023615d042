"""
Configuration loader for the contract build pipeline.

Supports loading from:
1. YAML config file (build.config.yaml in the working directory, then the
   source checkout this package lives in)
2. Environment variables (.env.local in the working directory, or CI secrets)

Environment variables take precedence over the file; command line flags
take precedence over both. Without a config file the defaults resolve
against the working directory, so `wasmbuild` run from a checkout builds
<cwd>/contracts/*.

Environment Variables:
- WASMBUILD_SOURCE_ROOT: directory holding one sub-directory per package
- WASMBUILD_OUTPUT_DIR: shared directory the artifacts are copied into
- WASMBUILD_TOOLCHAIN: toolchain program (default: cargo)
- WASMBUILD_TARGET: target triple (default: wasm32-unknown-unknown)

Usage:
    from wasmbuild.config import load_config

    config = load_config()
    print(config.build_cmd.argv(), [p.name for p in config.packages])
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from wasmbuild.errors import ConfigError
from wasmbuild.validation.schemas import SCHEMA_VERSION, config_errors

logger = logging.getLogger(__name__)

CONFIG_NAME = "build.config.yaml"
ENV_FILE_NAME = ".env.local"

# Source checkout root; only meaningful for editable installs
PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_TARGET = "wasm32-unknown-unknown"

ENV_OVERRIDES = {
    "source_root": "WASMBUILD_SOURCE_ROOT",
    "output_dir": "WASMBUILD_OUTPUT_DIR",
    "toolchain.program": "WASMBUILD_TOOLCHAIN",
    "toolchain.target": "WASMBUILD_TARGET",
}


def load_env_file(env_file: Path) -> List[str]:
    """
    Export KEY=VALUE lines from a dotenv file into os.environ.

    Accepts `export KEY=VALUE`, comments and single or double quoted
    values. Variables already set in the environment win. Returns the
    names that were newly set.
    """
    if not env_file.is_file():
        return []

    loaded = []
    for raw in env_file.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]

        if key and key not in os.environ:
            os.environ[key] = value
            loaded.append(key)

    if loaded:
        logger.debug(f"Loaded {', '.join(loaded)} from {env_file}")
    return loaded


def find_config(start: Optional[Path] = None) -> Path:
    """Locate build.config.yaml: working directory first, then the checkout.

    Returns the working-directory candidate when neither exists.
    """
    cwd_candidate = Path(start or Path.cwd()) / CONFIG_NAME
    for candidate in (cwd_candidate, PROJECT_ROOT / CONFIG_NAME):
        if candidate.is_file():
            return candidate
    return cwd_candidate


@dataclass(frozen=True)
class BuildCommand:
    """Toolchain invocation applied identically to every package."""
    program: str = "cargo"
    subcommand: Optional[str] = "build"
    target: Optional[str] = DEFAULT_TARGET
    release: bool = True
    extra_args: Tuple[str, ...] = ()
    artifact_extension: str = "wasm"
    output_subdir: Optional[str] = None

    def argv(self) -> List[str]:
        cmd = [self.program]
        if self.subcommand:
            cmd.append(self.subcommand)
        if self.target:
            cmd += ["--target", self.target]
        if self.release:
            cmd.append("--release")
        cmd.extend(self.extra_args)
        return cmd

    @property
    def output_dir(self) -> Path:
        """Where the toolchain leaves artifacts, relative to the package directory."""
        if self.output_subdir:
            return Path(self.output_subdir)
        profile = "release" if self.release else "debug"
        if self.target:
            return Path("target") / self.target / profile
        return Path("target") / profile

    def artifact_name(self, package: str) -> str:
        return f"{package}.{self.artifact_extension}"

    def artifact_path(self, package: str, source_dir: Path) -> Path:
        # An absolute output_subdir (shared workspace target dir) wins over source_dir
        return source_dir / self.output_dir / self.artifact_name(package)


@dataclass(frozen=True)
class PackageSpec:
    """A package to build: its name and, optionally, an explicit source path."""
    name: str
    path: Optional[Path] = None


@dataclass
class PipelineConfig:
    """Resolved pipeline configuration."""
    packages: List[PackageSpec]
    source_root: Path
    output_dir: Path
    build_cmd: BuildCommand = field(default_factory=BuildCommand)
    config_path: Optional[Path] = None


def _default_config() -> Dict[str, Any]:
    """Return default configuration."""
    return {
        "schemaVersion": SCHEMA_VERSION,
        "source_root": "contracts",
        "output_dir": "contracts/dist",
        "packages": ["auction_house", "escrow", "account_manager"],
        "toolchain": {
            "program": "cargo",
            "subcommand": "build",
            "target": DEFAULT_TARGET,
            "release": True,
            "artifact_extension": "wasm",
        },
    }


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.warning(f"Config not found: {config_path}, using defaults")
        return _default_config()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if data is None:
        data = {}

    errors = config_errors(data)
    if errors:
        details = "\n".join(errors)
        raise ConfigError(f"Config validation failed for {config_path}:\n{details}")

    return data


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for key_path, var_name in ENV_OVERRIDES.items():
        value = os.getenv(var_name)
        if not value:
            continue
        logger.debug(f"Using {var_name} for {key_path}")
        parts = key_path.split(".")
        obj = data
        for part in parts[:-1]:
            obj = obj.setdefault(part, {})
        obj[parts[-1]] = value
    return data


def _resolve(base: Path, value: Union[str, Path]) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def parse_packages(entries: Sequence[Any], base: Path) -> List[PackageSpec]:
    """Turn config entries (names or {name, path} mappings) into PackageSpecs."""
    packages = []
    for entry in entries:
        if isinstance(entry, str):
            packages.append(PackageSpec(name=entry))
        else:
            path = entry.get("path")
            packages.append(
                PackageSpec(
                    name=entry["name"],
                    path=_resolve(base, path) if path else None,
                )
            )
    return packages


def build_command_from_dict(toolchain: Dict[str, Any]) -> BuildCommand:
    defaults = BuildCommand()
    return BuildCommand(
        program=toolchain.get("program", defaults.program),
        subcommand=toolchain.get("subcommand", defaults.subcommand),
        target=toolchain.get("target", defaults.target),
        release=toolchain.get("release", defaults.release),
        extra_args=tuple(toolchain.get("extra_args", ())),
        artifact_extension=toolchain.get("artifact_extension", defaults.artifact_extension),
        output_subdir=toolchain.get("output_subdir", defaults.output_subdir),
    )


def load_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Load the pipeline configuration.

    With no path, build.config.yaml is looked up via find_config().
    Relative paths in the file resolve against the directory holding it;
    when no file exists, the defaults resolve against the working directory.
    .env.local in the working directory is read before env overrides apply.
    Raises ConfigError if the file is unreadable or fails validation.
    """
    cwd = Path.cwd()
    if config_path is None:
        config_path = find_config(cwd)

    load_env_file(cwd / ENV_FILE_NAME)

    data = _apply_env_overrides(_read_config_file(config_path))
    base = config_path.parent.resolve() if config_path.exists() else cwd.resolve()

    return PipelineConfig(
        packages=parse_packages(data.get("packages", []), base),
        source_root=_resolve(base, data.get("source_root", ".")),
        output_dir=_resolve(base, data.get("output_dir", "dist")),
        build_cmd=build_command_from_dict(data.get("toolchain") or {}),
        config_path=config_path,
    )
