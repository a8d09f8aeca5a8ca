"""hostops: run named tasks against hosts through pluggable capabilities."""

from .capabilities import create_dispatcher
from .config import Configuration, ConfigurationError, HostConfig, load_config
from .tasks import TaskContext, TaskDispatcher

__all__ = [
    "create_dispatcher",
    "Configuration",
    "ConfigurationError",
    "HostConfig",
    "load_config",
    "TaskContext",
    "TaskDispatcher",
]

__version__ = "0.1.0"
