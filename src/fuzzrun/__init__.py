"""fuzzrun public API surface.

Launches a protocol fuzzing server (the Autobahn test suite by default) in a
container, attached to the terminal, and always removes it afterwards.
"""

from .config import LaunchSpec, build_launch_spec, load_config, resolve_base_dir
from .launcher import Launcher
from .results import RunResult
from .runtime import SessionRuntime
from .version import __version__

__all__ = [
    "LaunchSpec",
    "Launcher",
    "RunResult",
    "SessionRuntime",
    "__version__",
    "build_launch_spec",
    "load_config",
    "resolve_base_dir",
]
