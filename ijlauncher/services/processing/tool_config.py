import os
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from ijlauncher.errors import NotInstalled
from ijlauncher.models.imagej_configuration import ImageJConfiguration


class ImageJInstallation:
    """Locates the pieces of an ImageJ installation (jar, macros, plugins, Java)."""

    def __init__(self, configuration: ImageJConfiguration):
        self.configuration = configuration

    @property
    def root(self) -> Path:
        return Path(self.configuration.path).expanduser()

    def runtime_jar(self) -> Path:
        return self.root / self.configuration.runtime_jar

    def macros_dir(self) -> Path:
        return self.root / self.configuration.macros_dir

    def macro_path(self, macro: str) -> Path:
        """Path of a batch macro, as given to ``-batchpath``."""
        return Path(self.configuration.macros_dir) / f"{macro}.ijm"

    def plugins_dir(self) -> Path:
        return self.root / "plugins"

    def lib_dir(self) -> Path:
        return self.plugins_dir() / "lib"

    def java_executable(self) -> Optional[str]:
        """
        Resolve the Java executable.

        The configured binary wins when it is an existing path; otherwise it is
        looked up in ``$JAVA_HOME/bin`` and then on ``PATH``.

        Returns:
            Full path to Java, or None if it cannot be found
        """
        binary = self.configuration.java_binary
        if os.path.sep in binary or (os.path.altsep and os.path.altsep in binary):
            return binary if Path(binary).exists() else None

        java_home = os.environ.get('JAVA_HOME')
        if java_home:
            for name in (binary, f"{binary}.exe"):
                candidate = Path(java_home) / "bin" / name
                if candidate.exists():
                    return str(candidate)

        return shutil.which(binary)

    def java_available(self) -> bool:
        return self.java_executable() is not None

    def is_installed(self) -> bool:
        return self.root.is_dir() and self.runtime_jar().is_file()

    def check(self) -> None:
        """
        Make sure ImageJ can be launched from the configured path.

        Raises:
            NotInstalled: If the folder or the ImageJ jar is missing
        """
        if not self.root.is_dir():
            raise NotInstalled(self.configuration.path, "installation folder")
        if not self.runtime_jar().is_file():
            raise NotInstalled(self.configuration.path, self.configuration.runtime_jar)

    def validate_environment(self) -> Tuple[bool, List[str]]:
        """
        Validate the whole launch environment.

        Returns:
            Tuple of (all_ok, error_messages)
        """
        errors = []

        try:
            self.check()
        except NotInstalled as e:
            errors.append(str(e))

        if not self.java_available():
            errors.append(f"Java: '{self.configuration.java_binary}' not found (set JAVA_HOME or PATH)")

        if self.root.is_dir() and not self.macros_dir().is_dir():
            errors.append(f"Macros folder not found: {self.macros_dir()}")

        return (len(errors) == 0), errors
