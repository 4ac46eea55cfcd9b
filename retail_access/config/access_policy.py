"""
Access policy configuration loader.

Loads operational settings for the access control engine from
access_policy.yml (shipped inside this package), overridable with the
ACCESS_POLICY_CONFIG_PATH environment variable or an explicit path.

Consumers:
  - HierarchyGraph: traversal depth cap
  - ActorResolver: departments granted to an impersonating MASTER
  - ProvisioningService: titles/department of provisioned positions

Usage:
    from retail_access.config.access_policy import get_access_policy

    policy = get_access_policy()
    depth = policy.max_traversal_depth
"""

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

from retail_access.constants.hierarchy import DepartmentType

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ACCESS_POLICY_CONFIG_PATH"
_DEFAULT_CONFIG_FILE = Path(__file__).parent / "access_policy.yml"

_FALLBACK_MAX_DEPTH = 32


class AccessPolicyLoader:
    """
    Thread-safe singleton loader for access_policy.yml.

    Call reset() in tests to drop the cached instance.
    """

    _instance: Optional["AccessPolicyLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path
        self._raw: Dict[str, Any] = {}
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    # ------------------------------------------------------------------
    # Config resolution
    # ------------------------------------------------------------------

    def _resolve_path(self) -> Path:
        candidates = []
        if self._config_path:
            candidates.append(Path(self._config_path))
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            candidates.append(Path(env_path))
        candidates.append(_DEFAULT_CONFIG_FILE)

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved

        raise FileNotFoundError(
            f"access_policy.yml not found in: {[str(p) for p in candidates]}"
        )

    def _load(self) -> None:
        with self._load_lock:
            path = self._resolve_path()
            logger.info("Loading access policy config from %s", path)

            with open(path, "r") as f:
                self._raw = yaml.safe_load(f) or {}

            # Fail fast on a bad department name rather than at first use
            DepartmentType(self.store_manager_department)

            logger.info(
                "Loaded access policy",
                extra={
                    "max_traversal_depth": self.max_traversal_depth,
                    "impersonation_grants_all_departments": self.impersonation_grants_all_departments,
                },
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Re-read the YAML from disk (e.g. after a config change)."""
        self._load()

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    @property
    def max_traversal_depth(self) -> int:
        value = int(self._raw.get("max_traversal_depth", _FALLBACK_MAX_DEPTH))
        return value if value > 0 else _FALLBACK_MAX_DEPTH

    @property
    def impersonation_grants_all_departments(self) -> bool:
        return bool(self._raw.get("impersonation_grants_all_departments", True))

    @property
    def go_position_title(self) -> str:
        return (self._raw.get("go_position") or {}).get("title", "General Operator")

    @property
    def store_manager_position_title(self) -> str:
        return (self._raw.get("store_manager_position") or {}).get("title", "Store Manager")

    @property
    def store_manager_department(self) -> DepartmentType:
        value = (self._raw.get("store_manager_position") or {}).get(
            "department", DepartmentType.ADMINISTRATIVE.value
        )
        return DepartmentType(value)


def get_access_policy(config_path: Optional[str] = None) -> AccessPolicyLoader:
    """Get the singleton policy loader."""
    return AccessPolicyLoader(config_path)
