"""Configuration singleton with override > ENV > default resolution."""

import os
from threading import Lock
from typing import Any, Callable, Dict, Optional

# Import lazily to avoid circular imports
_env_module = None


def _get_env():
    """Lazy import of env module for fallback values."""
    global _env_module
    if _env_module is None:
        from bookloan.config import env
        _env_module = env
    return _env_module


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "yes", "1", "y", "on")


# key -> caster applied to raw ENV strings
_CASTERS: Dict[str, Callable[[str], Any]] = {
    "VERBOSE": _as_bool,
    "ENABLE_LOGGING": _as_bool,
    "QUEUE_CAPACITY": int,
    "MAX_BOOKS": int,
    "MAX_COPIES": int,
    "REPLY_OPEN_ATTEMPTS": int,
    "REPLY_RETRY_DELAY": float,
    "RESPONSE_TIMEOUT": float,
    "INGRESS_POLL_INTERVAL": float,
    "CONSOLE_POLL_INTERVAL": float,
}

# Settings that only exist at runtime (no env module constant)
_RUNTIME_DEFAULTS: Dict[str, Any] = {
    "VERBOSE": False,
    "OUTPUT_FILE": None,
}


class Config:
    """
    Configuration singleton that provides live settings access.

    Settings are resolved with priority: override > ENV var > default.
    Overrides are set by the command line front-ends (verbose flag, output
    file) and by tests.
    """

    _instance: Optional['Config'] = None
    _lock = Lock()

    def __new__(cls) -> 'Config':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._overrides: Dict[str, Any] = {}
        self._overrides_lock = Lock()
        self._initialized = True

    def _from_env(self, key: str) -> Any:
        raw = os.environ.get(key)
        if raw is None or raw == "":
            return None
        caster = _CASTERS.get(key)
        if caster is None:
            return raw
        try:
            return caster(raw)
        except ValueError:
            return None

    def _default(self, key: str, default: Any) -> Any:
        env = _get_env()
        if hasattr(env, key):
            return getattr(env, key)
        return _RUNTIME_DEFAULTS.get(key, default)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value by key.

        Args:
            key: The setting key (e.g., 'QUEUE_CAPACITY')
            default: Value returned when the key is unknown everywhere

        Returns:
            The setting value, or default if not found
        """
        with self._overrides_lock:
            if key in self._overrides:
                return self._overrides[key]

        value = self._from_env(key)
        if value is not None:
            return value
        return self._default(key, default)

    def set_override(self, key: str, value: Any) -> None:
        """Pin a setting for the rest of the process (CLI flags, tests)."""
        with self._overrides_lock:
            self._overrides[key] = value

    def clear_overrides(self) -> None:
        with self._overrides_lock:
            self._overrides.clear()

    def __getattr__(self, name: str) -> Any:
        """
        Allow attribute-style access to settings.

        Example: config.QUEUE_CAPACITY instead of config.get('QUEUE_CAPACITY')
        """
        # Avoid recursion for internal attributes
        if name.startswith('_'):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        sentinel = object()
        value = self.get(name, sentinel)
        if value is sentinel:
            raise AttributeError(f"Setting '{name}' not found in config or env")
        return value

    def is_from_env(self, key: str) -> bool:
        """Check if a setting's value comes from an environment variable."""
        with self._overrides_lock:
            if key in self._overrides:
                return False
        return self._from_env(key) is not None

    def get_all(self) -> Dict[str, Any]:
        """
        Get all known settings as a dictionary.

        Returns:
            Dict of every setting key to its resolved value
        """
        keys = set(_CASTERS) | set(_RUNTIME_DEFAULTS)
        env = _get_env()
        keys.update(name for name in dir(env) if name.isupper())
        with self._overrides_lock:
            keys.update(self._overrides)
        return {key: self.get(key) for key in sorted(keys)}


# Global singleton instance
config = Config()
