"""Registry of known test targets (the target universe).

The registry is loaded from a YAML manifest:

    targets:
      - label: //rs/tests/nns:node_removal_from_registry_test
        tags: [k8s, system_test_hourly]
      - label: //rs/tests/consensus:liveness_test
        tags: [k8s]

Definition order is preserved and is the order of "all" expansion.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from systest.errors import ConfigurationError
from systest.models import Target

logger = logging.getLogger(__name__)


class TargetManifest(BaseModel):
    """Root structure of the targets manifest file."""

    targets: list[Target] = Field(default_factory=list)

    @field_validator("targets")
    @classmethod
    def validate_unique_labels(cls, v: list[Target]) -> list[Target]:
        """Ensure no label is registered twice."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for target in v:
            if target.label in seen:
                duplicates.add(target.label)
            seen.add(target.label)
        if duplicates:
            raise ValueError(f"Duplicate target labels: {sorted(duplicates)}")
        return v


class TargetRegistry:
    """Provides access to registered targets by label and by package.

    Example:
        registry = TargetRegistry.from_yaml(Path("targets.yaml"))
        nns = registry.in_package("rs/tests/nns")

    """

    def __init__(self, targets: Iterable[Target] = ()) -> None:
        """Initialize the registry.

        Args:
            targets: Registered targets, in definition order.

        Raises:
            ConfigurationError: If a label is registered twice.

        """
        try:
            manifest = TargetManifest(targets=list(targets))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid target registry: {e}") from e
        self._targets: dict[str, Target] = {t.label: t for t in manifest.targets}
        self._packages: set[str] = {t.package for t in manifest.targets}

    @classmethod
    def from_yaml(cls, path: Path) -> TargetRegistry:
        """Load a registry from a YAML manifest.

        Raises:
            ConfigurationError: If the manifest is missing, unparsable or invalid.

        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Target manifest not found: {path}")

        try:
            with open(path) as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e

        if not raw_data or "targets" not in raw_data:
            raise ConfigurationError(f"{path} must contain a 'targets' key")

        try:
            manifest = TargetManifest.model_validate(raw_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid target manifest {path}: {e}") from e

        logger.debug(f"Loaded {len(manifest.targets)} targets from {path}")
        return cls(manifest.targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, label: object) -> bool:
        return label in self._targets

    def get(self, label: str) -> Target | None:
        """Return the target registered under ``label``, if any."""
        return self._targets.get(label)

    def all(self) -> list[Target]:
        """Return every registered target in definition order."""
        return list(self._targets.values())

    @property
    def packages(self) -> frozenset[str]:
        """Return the set of registered namespaces."""
        return frozenset(self._packages)

    def has_package(self, package: str) -> bool:
        """Return True if at least one target lives in ``package``."""
        return package in self._packages

    def has_package_under(self, prefix: str) -> bool:
        """Return True if ``prefix`` or any package below it is registered."""
        if prefix == "":
            return bool(self._packages)
        return any(p == prefix or p.startswith(prefix + "/") for p in self._packages)

    def in_package(self, package: str) -> list[Target]:
        """Return targets directly in ``package``."""
        return [t for t in self._targets.values() if t.package == package]

    def under(self, prefix: str) -> list[Target]:
        """Return targets in ``prefix`` and every package below it."""
        if prefix == "":
            return self.all()
        return [
            t
            for t in self._targets.values()
            if t.package == prefix or t.package.startswith(prefix + "/")
        ]
