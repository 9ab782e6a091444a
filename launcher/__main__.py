import sys
import traceback
from types import TracebackType
from typing import Type

import loguru
from loguru import logger

from launcher.cli.main import launch
from launcher.utils.app_info import AppInfo
from launcher.utils.obfuscate_message import obfuscate_message


def handle_exception(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    """
    Called (through excepthook) for any exception nothing else caught.
    The traceback goes to the log file and the process exits non-zero.
    """
    # Ignore KeyboardInterrupt exceptions, for when running through the terminal
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        sys.exit(1)

    logger.opt(exception=(exc_type, exc_value, exc_traceback)).error(
        "The launcher has failed with an uncaught exception"
    )
    sys.stderr.write(
        "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )
    sys.exit(1)


def formatter(record: "loguru.Record") -> str:
    """Custom formatter for loguru logger"""
    format_string = (
        "[{level}]"
        "[{time:YYYY-MM-DD HH:mm:ss}]"
        "[{process.id}]"
        "[{thread.name}]"
        "[{module}]"
        "[{function}][{line}]"
        " : "
    )

    record["extra"]["obfuscated_message"] = obfuscate_message(record["message"])
    return format_string + "{extra[obfuscated_message]}\n{exception}"


def setup_logging(debug: bool) -> None:
    """
    Replace loguru's default sink with a log file and a stderr sink.

    The previous run's log is kept as ``<name>.old.log``; anything older is
    dropped.
    """
    log_file = AppInfo().user_log_folder / (AppInfo().app_name + ".log")
    old_log_file = AppInfo().user_log_folder / (AppInfo().app_name + ".old.log")
    if old_log_file.exists() and old_log_file.is_file():
        old_log_file.unlink()
    if log_file.exists() and log_file.is_file():
        log_file.rename(old_log_file)

    # Remove the default stderr logger
    logger.remove()

    logger.add(log_file, level="DEBUG" if debug else "INFO", format=formatter)

    # Add a "WARNING" or higher stderr logger
    logger.add(sys.stderr, level="WARNING", format=formatter, colorize=False)


def main() -> None:
    # --debug must be known before the log file is opened, so it is read
    # here rather than by click
    debug_file_path = AppInfo().debug_flag_file
    debug_mode = "--debug" in sys.argv[1:] or (
        debug_file_path.exists() and debug_file_path.is_file()
    )
    setup_logging(debug_mode)

    sys.excepthook = handle_exception
    logger.info(f"Initializing {AppInfo().app_name}: {AppInfo().app_version}")
    launch()


if __name__ == "__main__":
    main()
