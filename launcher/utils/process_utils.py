"""
Target process handling: stop the game before updating, start it afterwards.
"""

import os
import platform
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import psutil
from loguru import logger

from launcher.models.events import ErrorEvent, LogEvent
from launcher.utils.event_channel import EventChannel
from launcher.utils.exception import TargetProcessError


class ProcessLocator(Protocol):
    """Finds and stops processes by executable name."""

    def find_by_name(self, name: str) -> Optional[Any]: ...
    def is_alive(self, handle: Any) -> bool: ...
    def kill(self, handle: Any) -> bool: ...
    def describe(self, handle: Any) -> str: ...


class PsutilProcessLocator:
    """:class:`ProcessLocator` backed by the OS process table via psutil."""

    def find_by_name(self, name: str) -> Optional[psutil.Process]:
        wanted = name.lower()
        own_pid = os.getpid()
        for proc in psutil.process_iter(["name"]):
            try:
                proc_name = proc.info["name"]
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if proc_name and proc_name.lower() == wanted and proc.pid != own_pid:
                return proc
        return None

    def is_alive(self, handle: psutil.Process) -> bool:
        try:
            return handle.is_running() and handle.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # Status of another user's process may be unreadable
            return psutil.pid_exists(handle.pid)

    def kill(self, handle: psutil.Process) -> bool:
        try:
            handle.kill()
        except psutil.NoSuchProcess:
            # Already gone
            return True
        except psutil.AccessDenied as e:
            logger.warning(f"Not allowed to kill process {handle.pid}: {e}")
            return False
        return True

    def describe(self, handle: psutil.Process) -> str:
        return str(handle.pid)


def terminate_target(
    name: str,
    locator: ProcessLocator,
    events: EventChannel,
    *,
    poll_interval: float,
    timeout: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Kill every process named ``name`` and block until none is left.

    :param name: Executable name of the target, e.g. ``Game.exe``
    :param locator: Process table access
    :param events: Channel for user-facing log lines
    :param poll_interval: Seconds between liveness checks
    :param timeout: Seconds to wait in total before giving up
    :raises TargetProcessError: If a process is still alive after ``timeout``
    """
    handle = locator.find_by_name(name)
    if handle is None:
        logger.info(f"No running {name} process found")
        events.publish(LogEvent("No running game process found."))
        return

    events.publish(LogEvent("Game process found. Shutting down..."))
    deadline = clock() + timeout
    announced_wait = False
    while handle is not None:
        pid = locator.describe(handle)
        logger.info(f"Killing {name} (pid {pid})")
        if not locator.kill(handle):
            events.publish(ErrorEvent(f"Failed to send kill signal to process {pid}"))

        if not announced_wait:
            events.publish(LogEvent("Waiting for game process to fully terminate..."))
            announced_wait = True

        while locator.is_alive(handle):
            if clock() >= deadline:
                raise TargetProcessError(
                    f"{name} (pid {pid}) did not exit within {timeout:.0f} seconds"
                )
            sleep(poll_interval)
        handle = locator.find_by_name(name)

    logger.info(f"All {name} processes have exited")
    events.publish(LogEvent("Game process terminated successfully."))


def launch_target(executable_path: Path, cwd: Path) -> int:
    """
    Start the target executable detached from the launcher.

    :param executable_path: Path to the game executable
    :param cwd: Working directory for the new process
    :return: PID of the spawned process
    :raises OSError: If the executable cannot be started
    """
    logger.info(f"Launching {executable_path}")
    if platform.system() == "Darwin":
        p = subprocess.Popen(["open", str(executable_path)], cwd=cwd)
    elif sys.platform == "win32":
        p = subprocess.Popen(
            [str(executable_path)],
            creationflags=subprocess.CREATE_NEW_PROCESS_GROUP
            | subprocess.DETACHED_PROCESS,
            cwd=cwd,
        )
    else:
        # not Windows, so assume POSIX
        p = subprocess.Popen([str(executable_path)], start_new_session=True, cwd=cwd)
    logger.debug(f"Launched {executable_path.name} with PID {p.pid}")
    return p.pid
