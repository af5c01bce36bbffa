"""
YAML loader with per-path caching for monitoring policies.

Loads a monitoring policy YAML file, validates it against
``MonitoringPolicy`` and caches the result per resolved path.

Usage::

    from stackgraph.monitoring.loader import MonitoringPolicyLoader

    loader = MonitoringPolicyLoader()
    policy = loader.load(Path("thresholds.yaml"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar, Optional

import yaml

from stackgraph.config import StackGraphConfig
from stackgraph.monitoring.policy import DEFAULT_MONITORING_POLICY, MonitoringPolicy

logger = logging.getLogger(__name__)


class MonitoringPolicyLoader:
    """Loads and caches monitoring policies from YAML files."""

    _cache: ClassVar[dict[str, MonitoringPolicy]] = {}

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the policy cache (useful in tests)."""
        cls._cache.clear()

    def load(self, path: Path) -> MonitoringPolicy:
        """Load a monitoring policy from a YAML file.

        Args:
            path: Path to the YAML policy file.

        Returns:
            Validated ``MonitoringPolicy`` instance.

        Raises:
            FileNotFoundError: If the file does not exist.
            TypeError: If the YAML root is not a mapping.
            yaml.YAMLError: If the file contains invalid YAML.
            pydantic.ValidationError: If the YAML does not match the schema.
        """
        key = str(path.resolve())
        if key in self._cache:
            logger.debug("Monitoring policy cache hit: %s", key)
            return self._cache[key]

        if not path.exists():
            raise FileNotFoundError(f"Monitoring policy file not found: {path}")

        with open(path) as fh:
            raw = yaml.safe_load(fh)

        policy = self._validate(raw, str(path))
        self._cache[key] = policy

        logger.debug(
            "Loaded monitoring policy: families=%d, rules=%d",
            len(policy.families),
            sum(len(f.rules) for f in policy.families),
        )
        return policy

    def load_from_string(self, yaml_str: str) -> MonitoringPolicy:
        """Load a monitoring policy from a YAML string (convenience for testing)."""
        raw = yaml.safe_load(yaml_str)
        return self._validate(raw, "<string>")

    @staticmethod
    def _validate(raw: object, source: str) -> MonitoringPolicy:
        if not isinstance(raw, dict):
            raise TypeError(
                f"Expected YAML mapping at root of {source}, got {type(raw).__name__}"
            )
        return MonitoringPolicy.model_validate(raw)


def resolve_policy(config: Optional[StackGraphConfig] = None) -> MonitoringPolicy:
    """The configured policy override, or the built-in table."""
    path = config.get_policy_path() if config is not None else None
    if path is None:
        return DEFAULT_MONITORING_POLICY
    return MonitoringPolicyLoader().load(path)
