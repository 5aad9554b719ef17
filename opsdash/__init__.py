"""Data layer for the operations dashboard: cached paginated queries, order lifecycle and invoicing."""

from opsdash.config import Config, load_config
from opsdash.core.constants import PACKAGE_VERSION
from opsdash.dashboard import Dashboard

__version__ = PACKAGE_VERSION

__all__ = [
    "Config",
    "Dashboard",
    "__version__",
    "load_config",
]
