"""
Pipeline error taxonomy.

Every error raised by the orchestrator names the package and the step
(navigate, build, collect) it failed in. None of them are recovered
locally: the first one aborts the remaining pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class PipelineError(Exception):
    """Base class for build pipeline failures."""

    step = "pipeline"

    def __init__(self, message: str, package: Optional[str] = None):
        super().__init__(message)
        self.package = package

    def describe(self) -> str:
        if self.package is None:
            return str(self)
        return f"[{self.package}] {self.step}: {self}"


class ConfigError(PipelineError):
    """Build configuration could not be loaded or is invalid."""

    step = "config"


class NavigationError(PipelineError):
    """The source directory for a package does not exist."""

    step = "navigate"

    def __init__(self, package: str, source_dir: Path):
        super().__init__(f"Source directory not found: {source_dir}", package)
        self.source_dir = source_dir


class BuildFailure(PipelineError):
    """The toolchain exited with a non-zero status (or could not be started)."""

    step = "build"

    def __init__(
        self,
        package: str,
        returncode: Optional[int],
        stdout: str = "",
        stderr: str = "",
        reason: Optional[str] = None,
    ):
        message = reason or f"Toolchain exited with code {returncode}"
        super().__init__(message, package)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def diagnostics(self) -> str:
        """Toolchain output, stderr first since cargo writes errors there."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)


class ArtifactMissingError(PipelineError):
    """Build reported success but the expected artifact is absent."""

    step = "collect"

    def __init__(self, package: str, expected_path: Path):
        super().__init__(
            f"Build succeeded but artifact is missing: {expected_path}", package
        )
        self.expected_path = expected_path


class CopyError(PipelineError):
    """The artifact exists but could not be copied to the output directory."""

    step = "collect"

    def __init__(self, package: str, source: Path, destination: Path, reason: str):
        super().__init__(f"Cannot copy {source} to {destination}: {reason}", package)
        self.source = source
        self.destination = destination
