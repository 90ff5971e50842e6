"""
ImageJ launch configuration.

The configuration is immutable: running processes keep the snapshot they were
launched with, and edits produce a new instance via :meth:`ImageJConfiguration.updated`.
"""

import os
from dataclasses import dataclass, replace, asdict
from pathlib import Path
from typing import Any, Dict, Optional

MAX_STACK_MEMORY = 515
MIN_MEMORY = 100
MIN_STACK_MEMORY = 10
FALLBACK_MAX_MEMORY = 1024


def max_memory() -> int:
    """Upper memory limit in MB: 70% of the physical memory of this machine."""
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return FALLBACK_MAX_MEMORY
    if total <= 0:
        return FALLBACK_MAX_MEMORY
    return int((total * 0.7) / 1000000)


def default_install_path() -> str:
    """Default ImageJ folder under the user's data directory."""
    data_home = os.environ.get("XDG_DATA_HOME", str(Path.home() / ".local" / "share"))
    return str(Path(data_home) / "ijlauncher" / "ImageJ")


@dataclass(frozen=True)
class ImageJConfiguration:
    """
    Everything needed to launch ImageJ.

    Attributes:
        path: ImageJ installation folder (working directory of every process)
        memory: Java heap size in MB (-Xmx)
        stack_memory: Java thread stack size in MB (-Xss)
        java_binary: Java executable name or path
        runtime_jar: ImageJ jar, relative to ``path``
        macros_dir: Folder holding the batch macros, relative to ``path``
        kill_timeout_ms: Grace period after terminate() before a cancelled
            process is killed
        plugin_repository: Base URL the plugin installer downloads from
    """

    path: str
    memory: int
    stack_memory: int = MAX_STACK_MEMORY
    java_binary: str = "java"
    runtime_jar: str = "ij.jar"
    macros_dir: str = "Atlas"
    kill_timeout_ms: int = 5000
    plugin_repository: Optional[str] = None

    @classmethod
    def default(cls) -> "ImageJConfiguration":
        return cls(path=default_install_path(), memory=max_memory())

    def updated(self, **changes: Any) -> "ImageJConfiguration":
        """Return a copy with ``changes`` applied and memory limits clamped."""
        new = replace(self, **changes)
        return replace(
            new,
            memory=clamp_memory(new.memory),
            stack_memory=clamp_stack_memory(new.stack_memory),
        )

    def to_store(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{path, memory, stackMemory}`` layout."""
        data = {
            "path": self.path,
            "memory": self.memory,
            "stackMemory": self.stack_memory,
        }
        defaults = ImageJConfiguration(path="", memory=0)
        for key, value in asdict(self).items():
            if key in ("path", "memory", "stack_memory"):
                continue
            if value != getattr(defaults, key):
                data[key] = value
        return data

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> "ImageJConfiguration":
        """
        Build a configuration from a persisted entry.

        Raises:
            ValueError: If a required field is missing or not a number
        """
        if not isinstance(data, dict):
            raise ValueError("Configuration entry must be a mapping")
        try:
            path = str(data["path"])
            memory = int(data["memory"])
            stack_memory = int(data.get("stackMemory", MAX_STACK_MEMORY))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid configuration entry: {e}") from e

        optional = {}
        for key in ("java_binary", "runtime_jar", "macros_dir", "plugin_repository"):
            if data.get(key) is not None:
                optional[key] = str(data[key])
        if data.get("kill_timeout_ms") is not None:
            optional["kill_timeout_ms"] = int(data["kill_timeout_ms"])

        return cls(
            path=path,
            memory=clamp_memory(memory),
            stack_memory=clamp_stack_memory(stack_memory),
            **optional,
        )


def clamp_memory(memory: int) -> int:
    return max(MIN_MEMORY, min(int(memory), max_memory()))


def clamp_stack_memory(stack_memory: int) -> int:
    return max(MIN_STACK_MEMORY, min(int(stack_memory), MAX_STACK_MEMORY))
