from dataclasses import asdict, dataclass
import json
import os
from pathlib import Path
from typing import Any

from service.config import settings
from service.log import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "CAPABILITY_CONFIG_"


@dataclass
class CapabilitySpec:
    """Remote prediction capability specification"""

    version: str
    description: str
    enabled: bool = True
    max_attempts: int | None = None


class CapabilityRegistry:
    """
    Registry of remote prediction capabilities, loaded from multiple sources:
    1. Built-in configurations (fallback)
    2. JSON file
    3. Environment variables
    """

    # Built-in default capabilities (always available)
    DEFAULT_CAPABILITIES = {
        "clip-embedding": CapabilitySpec(
            version="1c0371070cb827ec3c7f2f28adcdde54b50dcd239aa6faea0bc98b174ef03fb4",
            description="CLIP image embedding, one image per job",
            max_attempts=10,
        ),
        "clip-compare": CapabilitySpec(
            version="b4533e5f169ee82c053ad5f8fa665d6fb0e8c6d5e9e5b07b8efd1e19e8c5e887",
            description="CLIP pairwise image comparison returning a similarity",
        ),
        "dreamsim": CapabilitySpec(
            version="a5f0f96b9a65316379d7262cdd7c3fbaa64057f1b673a172b143974b067bf9ac",
            description="DreamSim perceptual distance between two images",
            max_attempts=15,
        ),
    }

    def __init__(self, config_file_path: str | None = None):
        self.config_file_path = config_file_path or settings.prediction.capability_config_path
        self._capabilities: dict[str, CapabilitySpec] = {}
        self._load_configurations()

    def _load_configurations(self):
        """Load configurations from multiple sources in priority order"""
        self._capabilities = {name: CapabilitySpec(**asdict(spec)) for name, spec in self.DEFAULT_CAPABILITIES.items()}

        self._load_from_file()
        self._load_from_env()

        logger.info(f"Loaded {len(self._capabilities)} capability configurations")

    def _load_from_file(self):
        """Load from JSON file"""
        try:
            config_path = Path(self.config_file_path)
            if config_path.exists():
                with open(config_path) as f:
                    file_config = json.load(f)
                self._merge(file_config, source=str(config_path))
        except Exception as e:
            logger.warning(f"Could not load capabilities from {self.config_file_path}: {e}")

    def _load_from_env(self):
        """Load from CAPABILITY_CONFIG_<NAME> environment variables"""
        for env_var in os.environ:
            if env_var.startswith(ENV_PREFIX):
                try:
                    self._merge(json.loads(os.environ[env_var]), source=env_var)
                except json.JSONDecodeError as e:
                    logger.error(f"Invalid JSON in {env_var}: {e}")

    def _merge(self, config: dict[str, Any], source: str) -> None:
        for name, spec_dict in config.get("capabilities", {}).items():
            try:
                self._capabilities[name] = CapabilitySpec(**spec_dict)
                logger.info(f"Loaded capability config from {source}: {name}")
            except TypeError as e:
                logger.error(f"Invalid capability spec for {name} in {source}: {e}")

    def get_capability(self, name: str) -> CapabilitySpec:
        """Get capability specification by name"""
        if name not in self._capabilities:
            raise KeyError(f"Unknown capability: {name}. Available: {list(self._capabilities.keys())}")

        spec = self._capabilities[name]
        if not spec.enabled:
            raise ValueError(f"Capability {name} is disabled")

        return spec

    def list_available(self) -> dict[str, dict[str, Any]]:
        """List all enabled capabilities"""
        return {name: asdict(spec) for name, spec in self._capabilities.items() if spec.enabled}

    def list_all(self) -> dict[str, dict[str, Any]]:
        """List all capabilities (including disabled)"""
        return {name: asdict(spec) for name, spec in self._capabilities.items()}


# Global registry instance
capability_registry = CapabilityRegistry()
