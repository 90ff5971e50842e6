"""
Download of the ImageJ plugin jars used by the batch macros.

Plugin jars go to ``<ImageJ>/plugins`` and the shared library jar to
``<ImageJ>/plugins/lib``. Every jar is fetched from ``<repository>/<jar name>``.
"""

import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from tqdm import tqdm

from ijlauncher.errors import InstallError

logger = logging.getLogger(__name__)

PLUGINS = (
    "MapCreator_.jar",
    "ObjectDetector_.jar",
    "HolesDetector_.jar",
    "Cropping_Big_Stitched_.jar",
)

LIBRARIES = (
    "atlas-imagej-commons.jar",
)

# (jar_index, total_jars, jar_name)
ProgressCallback = Callable[[int, int, str], None]


class DownloadProgressBar(tqdm):
    """tqdm bar driven by ``urlretrieve``'s report hook."""

    def update_to(self, b=1, bsize=1, tsize=None):
        if tsize is not None and tsize > 0:
            self.total = tsize
        self.update(b * bsize - self.n)


def plan_downloads(install_path: Union[str, Path],
                   plugins: Iterable[str] = PLUGINS,
                   libraries: Iterable[str] = LIBRARIES) -> List[Tuple[str, Path]]:
    """
    List the jars to fetch and where each one goes.

    Returns:
        List of (jar_name, destination_file)
    """
    plugins_dir = Path(install_path) / "plugins"
    lib_dir = plugins_dir / "lib"
    plan = [(name, plugins_dir / name) for name in plugins]
    plan += [(name, lib_dir / name) for name in libraries]
    return plan


def jar_url(repository: str, jar_name: str) -> str:
    return f"{repository.rstrip('/')}/{jar_name}"


def download_jar(url: str, destination: Path, show_progress: bool = False):
    """
    Download one jar to ``destination`` through a temporary ``.part`` file.

    Raises:
        InstallError: If the download or the write fails
    """
    partial = destination.with_suffix(destination.suffix + ".part")
    try:
        if show_progress:
            with DownloadProgressBar(unit='B', unit_scale=True, miniters=1, desc=destination.name) as bar:
                urllib.request.urlretrieve(url, partial, reporthook=bar.update_to)
        else:
            urllib.request.urlretrieve(url, partial)
        partial.replace(destination)
    except (urllib.error.URLError, OSError, ValueError) as e:
        if partial.exists():
            partial.unlink()
        raise InstallError(f"Failed to download {url}: {e}") from e


def install_plugins(install_path: Union[str, Path],
                    repository: Optional[str],
                    progress_callback: Optional[ProgressCallback] = None,
                    show_progress: bool = False,
                    plugins: Iterable[str] = PLUGINS,
                    libraries: Iterable[str] = LIBRARIES) -> List[Path]:
    """
    Download the plugin and library jars into an ImageJ installation.

    Jars that are already present are skipped.

    Args:
        install_path: ImageJ installation folder
        repository: Base URL of the jar repository
        progress_callback: Called before each jar with (index, total, name)
        show_progress: Show a tqdm bar per download on the console

    Returns:
        Paths of the jars downloaded by this call

    Raises:
        InstallError: If no repository is configured or a download fails
    """
    if not repository:
        raise InstallError("No plugin repository configured")

    root = Path(install_path)
    plan = plan_downloads(root, plugins, libraries)
    downloaded = []

    for index, (name, destination) in enumerate(plan):
        if progress_callback is not None:
            progress_callback(index, len(plan), name)

        if destination.exists():
            logger.info("%s already installed, skipping", name)
            continue

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Cannot create {destination.parent}: {e}") from e

        url = jar_url(repository, name)
        logger.info("Downloading %s from %s", name, url)
        download_jar(url, destination, show_progress)
        downloaded.append(destination)

    if progress_callback is not None:
        progress_callback(len(plan), len(plan), "")

    logger.info("Plugins installed in %s (%d downloaded)", root / "plugins", len(downloaded))
    return downloaded
