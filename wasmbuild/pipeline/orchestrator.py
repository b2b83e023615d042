#!/usr/bin/env python3
"""
Contract Build Orchestrator

Compiles an ordered list of contract packages with an external toolchain
and collects each artifact into a shared output directory:
- Strict declared order, one package at a time
- Blocking toolchain invocation per package (no timeout)
- Fail-fast: the first failure stops the pipeline
- Artifacts already collected are left in place

Usage:
    # Build every package in build.config.yaml
    python -m wasmbuild

    # Build specific packages, in the given order
    python -m wasmbuild --packages escrow,auction_house

    # Dry run (show what would run)
    python -m wasmbuild --dry-run

    # Show the resolved package list
    python -m wasmbuild --list-packages
"""

from __future__ import annotations

import argparse
import logging
import shutil
import subprocess
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from wasmbuild.config import (
    BuildCommand,
    PackageSpec,
    PipelineConfig,
    load_config,
)
from wasmbuild.errors import (
    ArtifactMissingError,
    BuildFailure,
    ConfigError,
    CopyError,
    NavigationError,
    PipelineError,
)
from wasmbuild.validation.schemas import package_name_errors

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


class PackageStatus(Enum):
    """Status of a package build."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PackageBuild:
    """A single package in the build pipeline."""
    name: str
    source_dir: Path

    # Runtime state
    status: PackageStatus = PackageStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: float = 0.0
    return_code: Optional[int] = None
    artifact: Optional[Path] = None
    error: str = ""

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "duration": self.duration_seconds,
            "return_code": self.return_code,
            "artifact": str(self.artifact) if self.artifact else None,
        }


@dataclass
class BuildResult:
    """Result of a full pipeline build."""
    build_id: str
    started_at: str
    completed_at: Optional[str] = None
    duration_seconds: float = 0.0
    status: str = "pending"

    total_packages: int = 0
    packages_succeeded: int = 0
    packages_failed: int = 0
    packages_cancelled: int = 0

    # One entry per declared package, in build order
    package_results: List[Dict[str, Any]] = field(default_factory=list)

    errors: List[str] = field(default_factory=list)

    @property
    def artifacts(self) -> List[Path]:
        return [Path(r["artifact"]) for r in self.package_results if r.get("artifact")]


class BuildOrchestrator:
    """
    Builds contract packages in declared order and collects their artifacts.

    Every package is mapped to an absolute source directory up front: either
    its explicit path or <source_root>/<name>. The toolchain runs with that
    directory as its working directory; the process cwd is never changed.
    """

    def __init__(
        self,
        packages: Sequence[Union[str, PackageSpec]],
        build_cmd: BuildCommand,
        output_dir: Path,
        source_root: Optional[Path] = None,
        dry_run: bool = False,
    ):
        self.build_cmd = build_cmd
        self.output_dir = Path(output_dir).resolve()
        self.source_root = Path(source_root or Path.cwd()).resolve()
        self.dry_run = dry_run

        self.packages = tuple(
            p if isinstance(p, PackageSpec) else PackageSpec(name=p) for p in packages
        )
        self.result: Optional[BuildResult] = None

        duplicates = [name for name, n in Counter(p.name for p in self.packages).items() if n > 1]
        if duplicates:
            logger.warning(f"Duplicate packages will be rebuilt: {', '.join(duplicates)}")

    @classmethod
    def from_config(cls, config: PipelineConfig, dry_run: bool = False) -> "BuildOrchestrator":
        return cls(
            packages=config.packages,
            build_cmd=config.build_cmd,
            output_dir=config.output_dir,
            source_root=config.source_root,
            dry_run=dry_run,
        )

    def source_dir(self, package: PackageSpec) -> Path:
        if package.path is not None:
            return Path(package.path).resolve()
        return self.source_root / package.name

    def plan(self) -> List[PackageBuild]:
        """Map every declared package to its source directory, in order."""
        return [PackageBuild(name=p.name, source_dir=self.source_dir(p)) for p in self.packages]

    def _navigate(self, build: PackageBuild) -> None:
        if not build.source_dir.is_dir():
            raise NavigationError(build.name, build.source_dir)

    def _build(self, build: PackageBuild) -> None:
        """Run the toolchain in the package directory and wait for it to exit."""
        cmd = self.build_cmd.argv()
        logger.debug(f"Command: {' '.join(cmd)} (cwd={build.source_dir})")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                cwd=str(build.source_dir),
            )
        except OSError as e:
            raise BuildFailure(
                build.name, None, reason=f"Cannot start {cmd[0]}: {e}"
            ) from e

        build.return_code = result.returncode

        if result.returncode != 0:
            logger.error(f"Package {build.name} failed with code {result.returncode}")
            if result.stderr:
                logger.error(f"Error output: {result.stderr[:500]}")
            raise BuildFailure(build.name, result.returncode, result.stdout, result.stderr)

        # cargo reports warnings on stderr even when the build succeeds
        if result.stderr:
            logger.debug(f"Toolchain output for {build.name}:\n{result.stderr.rstrip()}")

    def _collect(self, build: PackageBuild) -> Path:
        """Copy the package artifact into the output directory."""
        artifact = self.build_cmd.artifact_path(build.name, build.source_dir)
        if not artifact.is_file():
            raise ArtifactMissingError(build.name, artifact)

        destination = self.output_dir / artifact.name
        if not self.output_dir.is_dir():
            raise CopyError(build.name, artifact, destination, "output directory does not exist")

        try:
            shutil.copy2(artifact, destination)
        except OSError as e:
            raise CopyError(build.name, artifact, destination, str(e)) from e

        logger.debug(f"Copied {artifact} -> {destination}")
        return destination

    def _run_package(self, build: PackageBuild) -> None:
        build.status = PackageStatus.RUNNING
        build.start_time = datetime.now()

        logger.info(f"Building package: {build.name}")

        try:
            self._navigate(build)

            if self.dry_run:
                logger.info(
                    f"[DRY RUN] Would execute: {' '.join(self.build_cmd.argv())} "
                    f"in {build.source_dir}"
                )
                logger.info(
                    f"[DRY RUN] Would copy: "
                    f"{self.build_cmd.artifact_path(build.name, build.source_dir)} -> {self.output_dir}"
                )
            else:
                self._build(build)
                build.artifact = self._collect(build)

            build.status = PackageStatus.SUCCESS
            logger.info(f"Package {build.name} completed successfully")
        except PipelineError as e:
            build.status = PackageStatus.FAILED
            build.error = str(e)
            raise
        finally:
            build.end_time = datetime.now()
            build.duration_seconds = (build.end_time - build.start_time).total_seconds()

    def run(self) -> BuildResult:
        """
        Run the build pipeline.

        Returns:
            BuildResult when every package was built and collected

        Raises:
            PipelineError: for the first package that fails; packages after it
            are never attempted. ``self.result`` holds the partial result.
        """
        build_id = f"build_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        result = BuildResult(
            build_id=build_id,
            started_at=datetime.now().isoformat()
        )
        self.result = result

        logger.info(f"Starting build: {build_id}")

        builds = self.plan()
        result.total_packages = len(builds)
        failure: Optional[PipelineError] = None

        for build in builds:
            if failure is not None:
                build.status = PackageStatus.CANCELLED
                result.packages_cancelled += 1
                result.package_results.append(build.summary())
                continue

            try:
                self._run_package(build)
                result.packages_succeeded += 1
            except PipelineError as e:
                failure = e
                result.packages_failed += 1
                result.errors.append(e.describe())

            result.package_results.append(build.summary())

        result.status = "failed" if failure else "success"

        result.completed_at = datetime.now().isoformat()
        started = datetime.fromisoformat(result.started_at)
        completed = datetime.fromisoformat(result.completed_at)
        result.duration_seconds = (completed - started).total_seconds()

        logger.info(
            f"Build {build_id} completed: {result.status} "
            f"({result.packages_succeeded} succeeded, {result.packages_failed} failed, "
            f"{result.packages_cancelled} cancelled)"
        )

        if failure is not None:
            raise failure

        return result


def run_pipeline(
    packages: Sequence[Union[str, PackageSpec]],
    build_cmd: BuildCommand,
    output_dir: Path,
    source_root: Optional[Path] = None,
    dry_run: bool = False,
) -> BuildResult:
    """Build and collect every package, raising on the first failure."""
    orchestrator = BuildOrchestrator(
        packages, build_cmd, output_dir, source_root=source_root, dry_run=dry_run
    )
    return orchestrator.run()


def _select_packages(config: PipelineConfig, names: List[str]) -> List[PackageSpec]:
    errors = package_name_errors(names)
    if errors:
        details = "\n".join(errors)
        raise ConfigError(f"Invalid --packages:\n{details}")

    configured = {p.name: p for p in config.packages}
    return [configured.get(name, PackageSpec(name=name)) for name in names]


def print_summary(result: BuildResult) -> None:
    print("\n" + "=" * 60)
    print("BUILD SUMMARY")
    print("=" * 60)
    print(f"Build ID: {result.build_id}")
    print(f"Status: {result.status.upper()}")
    print(f"Duration: {result.duration_seconds:.2f}s")
    print(f"\nPackages:")
    print(f"  Succeeded: {result.packages_succeeded}")
    print(f"  Failed: {result.packages_failed}")
    print(f"  Cancelled: {result.packages_cancelled}")

    if result.package_results:
        print("\nPackage Details:")
        for details in result.package_results:
            status = details.get("status", "unknown")
            duration = details.get("duration", 0)
            print(f"  {details['name']}: {status} ({duration:.2f}s)")

    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  - {error}")

    print("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m wasmbuild",
        description="Contract Build Orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (default: ./build.config.yaml)"
    )

    parser.add_argument(
        "--packages",
        type=str,
        help="Comma-separated list of packages to build, in order"
    )

    parser.add_argument(
        "--source-root",
        type=Path,
        help="Directory holding one sub-directory per package"
    )

    parser.add_argument(
        "--out",
        type=Path,
        help="Existing directory the artifacts are copied into"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would run without executing"
    )

    parser.add_argument(
        "--list-packages",
        action="store_true",
        help="List packages in build order and exit"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
        if args.packages:
            names = [name.strip() for name in args.packages.split(",") if name.strip()]
            config.packages = _select_packages(config, names)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.source_root:
        config.source_root = args.source_root.resolve()
    if args.out:
        config.output_dir = args.out.resolve()

    orchestrator = BuildOrchestrator.from_config(config, dry_run=args.dry_run)

    if args.list_packages:
        print("\nPackages (build order):")
        print("=" * 60)

        for build in orchestrator.plan():
            print(f"  {build.name}")
            print(f"    Source: {build.source_dir}")
            print(f"    Artifact: {config.build_cmd.artifact_path(build.name, build.source_dir)}")

        print(f"\nCommand: {' '.join(config.build_cmd.argv())}")
        print(f"Output: {config.output_dir}")
        return 0

    try:
        orchestrator.run()
    except PipelineError as e:
        logger.error(f"Build stopped at package {e.package} ({e.step}): {e}")
        if isinstance(e, BuildFailure) and e.diagnostics:
            print(e.diagnostics, file=sys.stderr)
        print_summary(orchestrator.result)
        return 1

    print_summary(orchestrator.result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
