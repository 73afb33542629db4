import logging
import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from typing import Final

import psutil

from .consts import Consts
from .filter import SingleLineNonEmptyFilter


@dataclass
class CommandResult:
    """Outcome of one external command"""
    return_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def output(self) -> str:
        """stdout followed by stderr, the way `2>&1` would show it"""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class Functions:
    POLLER_LOG: Final[str] = "POLLER"
    PROBE_LOG: Final[str] = "PROBE"
    ROLLOUT_LOG: Final[str] = "ROLLOUT"
    INIT_LOG: Final[str] = "INIT"

    TRACE: Final[str] = "TRACE"
    DEBUG: Final[str] = "DEBUG"
    INFO: Final[str] = "INFO"
    WARN: Final[str] = "WARN"
    ERROR: Final[str] = "ERROR"
    FATAL: Final[str] = "FATAL"

    # Return code used when the command could not be started at all
    NOT_STARTED: Final[int] = -99

    @staticmethod
    def log_level(source):
        level = os.getenv(f"{source.name.upper()}_LOG_LEVEL", "").upper()
        level_importance = {
            Functions.TRACE: logging.DEBUG,
            Functions.DEBUG: logging.DEBUG,
            Functions.INFO: logging.INFO,
            Functions.WARN: logging.WARNING,
            Functions.ERROR: logging.ERROR,
            Functions.FATAL: logging.FATAL
        }
        return level_importance[level] if level in level_importance else logging.INFO

    @staticmethod
    def setup_log(source):
        selected_level = Functions.log_level(source)

        log_source_handler = logging.StreamHandler(sys.stdout)
        log_source_formatter = logging.Formatter('%(name)s [%(asctime)s] %(levelname)s - %(message)s')
        log_source_handler.setFormatter(log_source_formatter)
        log_source_handler.addFilter(SingleLineNonEmptyFilter(Consts.log_max_length))
        source.setLevel(selected_level)
        source.addHandler(log_source_handler)
        return selected_level

    @staticmethod
    def load(filename):
        with open(filename) as content_file:
            return content_file.read()

    @staticmethod
    def run_bash(log_source, command, timeout=None, log_output=False, env=None) -> CommandResult:
        """
        Run an external command and collect its output.

        Args:
            log_source: Logger receiving the command line and, optionally, its output
            command: Argument list, or a string split with shlex (never run through a shell)
            timeout: Seconds before the whole process tree is killed
            log_output: Log stdout lines at debug level
            env: Optional environment for the child process

        Returns:
            CommandResult. A command that cannot be started returns NOT_STARTED.
        """
        if not isinstance(command, (list, tuple)):
            command = shlex.split(command)

        log_source.debug(f"Running: {shlex.join(str(part) for part in command)}")

        try:
            process = subprocess.Popen(command,
                                       stdout=subprocess.PIPE,
                                       stderr=subprocess.PIPE,
                                       universal_newlines=True,
                                       env=env)
        except OSError as e:
            log_source.error(f"{e}")
            return CommandResult(Functions.NOT_STARTED, stderr=str(e))

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            Functions.kill_tree(process.pid)
            stdout, stderr = process.communicate()
            log_source.debug(f"Command timed out after {timeout}s")
            return CommandResult(process.returncode if process.returncode is not None else -9,
                                 stdout or "", stderr or "", timed_out=True)

        if log_output and stdout:
            log_source.debug(stdout)
        if stderr:
            log_source.debug(stderr)

        return CommandResult(process.returncode, stdout, stderr)

    @staticmethod
    def kill_tree(pid):
        """Kill a process and every child it spawned (bash -c curl ... leaves grandchildren)"""
        try:
            parent = psutil.Process(pid)
        except psutil.NoSuchProcess:
            return

        processes = parent.children(recursive=True) + [parent]
        for process in processes:
            try:
                process.kill()
            except psutil.NoSuchProcess:
                pass
        psutil.wait_procs(processes, timeout=5)
