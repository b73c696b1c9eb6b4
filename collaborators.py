"""
Contracts for the external crawler and metrics client, and the loader that
resolves their implementations from "module:Class" paths.
"""
import importlib
import logging
from typing import Any, Dict, List, Protocol, Sequence, Union

from config import ConfigError

logger = logging.getLogger(__name__)


class ProxyAuthenticationError(Exception):
    """Raised by a collaborator when the upstream proxy rejects its credentials."""


class Crawler(Protocol):
    def crawl_data(self, target: Union[str, Sequence[str]], synchronized: bool = False) -> None: ...

    def close(self) -> None: ...


class MetricsClient(Protocol):
    def ensure_collection(self) -> None: ...

    def fetch_cryptocurrencies(self) -> List[Dict[str, Any]]: ...

    def save_to_db(self, data: List[Dict[str, Any]]) -> int: ...

    def close(self) -> None: ...


def load_collaborator(path: str) -> type:
    """
    Imports a class from "package.module:ClassName" (or "package.module.ClassName").
    Anything that can't be imported is a fatal startup problem.
    """
    if ':' in path:
        module_name, _, attr = path.partition(':')
    else:
        module_name, _, attr = path.rpartition('.')

    if not module_name or not attr:
        raise ConfigError(f"Invalid collaborator path '{path}' (expected module:Class)")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import collaborator module '{module_name}': {e}") from e

    cls = getattr(module, attr, None)
    if cls is None:
        raise ConfigError(f"Module '{module_name}' has no attribute '{attr}'")

    logger.debug(f"Loaded collaborator {module_name}.{attr}")
    return cls
