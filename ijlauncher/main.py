import argparse
import logging
import sys

from PyQt6.QtWidgets import QApplication

from ijlauncher._metadata import __version__
from ijlauncher.controllers.imagej_controller import ImageJController
from ijlauncher.logging_config import configure_logging
from ijlauncher.models.task_list_model import TaskListModel
from ijlauncher.services.config_service import ConfigurationService, YamlKeyValueStore
from ijlauncher.ui.MainWindow import MainWindow


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ijlauncher", description="ImageJ launcher and batch-macro runner")
    parser.add_argument("--settings", help="Settings file (default: user config directory)")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--debug", action="store_true", help="Log process output and debug messages")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main() -> int:
    args = parse_args(sys.argv[1:])
    configure_logging(logging.DEBUG if args.debug else logging.INFO, args.log_file)

    app = QApplication(sys.argv)

    config_service = ConfigurationService(YamlKeyValueStore(args.settings))
    controller = ImageJController(
        configuration=config_service.load(),
        config_service=config_service,
        task_list=TaskListModel(),
    )
    win = MainWindow(controller)
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
