# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Sandboxed subprocess execution for external analyzers.

Commands are resolved through ``PATH`` only and executed without a shell.
Each invocation receives an environment rebuilt from scratch, a canonical
working directory, a wall-clock deadline, and per-stream capture caps. The
runner never interprets the child's output.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal

# Bandit: subprocess usage is intentional; arguments are passed as a list and
# ``shell=True`` is never used.
import subprocess  # nosec B404
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from io import BufferedReader
from pathlib import Path
from typing import IO, Final, cast

from ..constants import DEFAULT_GRACE_PERIOD_MS, DEFAULT_MAX_OUTPUT_BYTES
from ..errors import ErrorKind, ExecutionError, InputValidationError, ToolEnvironmentError

LOGGER = logging.getLogger(__name__)

SHELL_METACHARACTERS: Final[frozenset[str]] = frozenset(";&|`$(){}[]<>*?~")
_READ_CHUNK: Final[int] = 64 * 1024
_POLL_INTERVAL: Final[float] = 0.02
_DRAIN_TIMEOUT: Final[float] = 10.0
_DEFAULT_PATH: Final[str] = os.defpath


class CancellationToken:
    """Broadcast cancellation signal shared by every in-flight invocation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation of all observers."""

        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return ``True`` once :meth:`cancel` has been called."""

        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` seconds elapse."""

        return self._event.wait(timeout)


@dataclass(frozen=True, slots=True)
class SandboxPolicy:
    """Per-adapter binding of the command name, argv prefix, and environment.

    Attributes:
        command: Executable name looked up on ``PATH``.
        argv_prefix: Fixed leading arguments prepended to every invocation.
        allowed_flags: Enumerated arguments admitted despite metacharacters.
        env_passthrough: Variable names copied from the parent when present.
        env_overrides: Variables set explicitly, including empty values used to
            clear settings such as ``MYPYPATH``.
    """

    command: str
    argv_prefix: tuple[str, ...] = ()
    allowed_flags: frozenset[str] = frozenset()
    env_passthrough: tuple[str, ...] = ()
    env_overrides: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Invocation settings for :meth:`ProcessRunner.run`."""

    cwd: Path
    timeout_ms: int
    stdin_bytes: bytes | None = None
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    grace_period_ms: int = DEFAULT_GRACE_PERIOD_MS
    cancel: CancellationToken | None = None


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Raw outcome of a sandboxed invocation."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    wall_time_ms: int
    timed_out: bool = False
    overflowed: bool = False
    cancelled: bool = False

    def stdout_text(self) -> str:
        """Return stdout decoded as UTF-8, replacing undecodable bytes."""

        return self.stdout.decode("utf-8", errors="replace")

    def stderr_text(self) -> str:
        """Return stderr decoded as UTF-8, replacing undecodable bytes."""

        return self.stderr.decode("utf-8", errors="replace")


def check_argument(argument: str, allowed_flags: Iterable[str] = ()) -> None:
    """Reject ``argument`` when it carries shell metacharacters.

    Absolute paths and ``./``-relative forms are admitted, as are arguments
    enumerated in ``allowed_flags``.

    Raises:
        InputValidationError: When the argument is rejected.
    """

    if "\x00" in argument:
        raise InputValidationError(ErrorKind.UNSAFE_ARGUMENT, "argument contains a NUL byte")
    if not SHELL_METACHARACTERS.intersection(argument):
        return
    if argument.startswith(("/", "./")) or argument in set(allowed_flags):
        return
    raise InputValidationError(ErrorKind.UNSAFE_ARGUMENT, f"argument {argument!r} contains shell metacharacters")


def build_environment(policy: SandboxPolicy, source: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a scrubbed environment for ``policy``.

    Only ``PATH`` is inherited unconditionally; declared passthrough variables
    are copied when set and overrides are applied last.
    """

    parent = os.environ if source is None else source
    env = {"PATH": parent.get("PATH", _DEFAULT_PATH)}
    for name in policy.env_passthrough:
        value = parent.get(name)
        if value is not None:
            env[name] = value
    env.update(policy.env_overrides)
    return env


def resolve_command(command: str, env: Mapping[str, str]) -> str:
    """Resolve ``command`` through the sandbox ``PATH``.

    Raises:
        ToolEnvironmentError: When the executable cannot be found.
    """

    if os.sep in command or (os.altsep and os.altsep in command):
        raise InputValidationError(ErrorKind.UNSAFE_ARGUMENT, f"command must be a bare name, got {command!r}")
    resolved = shutil.which(command, path=env.get("PATH"))
    if resolved is None:
        raise ToolEnvironmentError(ErrorKind.TOOL_UNAVAILABLE, f"'{command}' was not found on PATH")
    return resolved


class _CappedReader(threading.Thread):
    """Drain a pipe into memory, flagging when the byte cap is exceeded."""

    def __init__(self, stream: IO[bytes], cap: int, overflow: threading.Event) -> None:
        super().__init__(daemon=True)
        self._stream = cast(BufferedReader, stream)
        self._cap = cap
        self._overflow = overflow
        self.buffer = bytearray()

    def run(self) -> None:
        try:
            while chunk := self._stream.read1(_READ_CHUNK):
                remaining = self._cap - len(self.buffer)
                if len(chunk) >= remaining:
                    self.buffer.extend(chunk[:remaining])
                    self._overflow.set()
                    break
                self.buffer.extend(chunk)
        except (OSError, ValueError):
            return
        finally:
            try:
                self._stream.close()
            except OSError:
                pass


def _feed_stdin(stream: IO[bytes], payload: bytes) -> None:
    try:
        stream.write(payload)
    except (BrokenPipeError, OSError):
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


def _send_signal(process: subprocess.Popen[bytes], sig: int) -> None:
    if process.poll() is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, sig)
        elif sig == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        pass


def _stop(process: subprocess.Popen[bytes], grace_seconds: float) -> None:
    _send_signal(process, signal.SIGTERM)
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        _send_signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        process.wait()


class ProcessRunner:
    """Re-entrant runner spawning one sandboxed child per call."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        """Initialise the runner.

        Args:
            environ: Parent environment used as the source for ``PATH`` and
                passthrough variables. Defaults to :data:`os.environ`.
        """

        self._environ = environ

    def environment_for(self, policy: SandboxPolicy) -> dict[str, str]:
        """Return the scrubbed environment that ``policy`` would receive."""

        return build_environment(policy, self._environ)

    def is_available(self, command: str, policy: SandboxPolicy | None = None) -> bool:
        """Return ``True`` when ``command`` resolves on the sandbox ``PATH``."""

        env = build_environment(policy or SandboxPolicy(command=command), self._environ)
        return shutil.which(command, path=env.get("PATH")) is not None

    def run(self, policy: SandboxPolicy, argv: Sequence[str], options: RunOptions) -> ProcessResult:
        """Execute ``policy.command`` with ``policy.argv_prefix + argv``.

        Args:
            policy: Bound command, prefix, and environment rules.
            argv: Additional arguments, each checked for metacharacters.
            options: Working directory, deadline, caps, and cancellation token.

        Returns:
            ProcessResult: Exit status and captured bytes.

        Raises:
            InputValidationError: When an argument or the working directory is rejected.
            ToolEnvironmentError: When the command is not on ``PATH``.
            ExecutionError: When the process cannot be spawned.
        """

        arguments = [*policy.argv_prefix, *argv]
        for argument in arguments:
            check_argument(argument, policy.allowed_flags)
        cwd = options.cwd
        if not cwd.is_absolute() or not cwd.is_dir():
            raise InputValidationError(ErrorKind.BLOCKED_PATH, f"working directory {cwd} is not a canonical directory")

        env = build_environment(policy, self._environ)
        executable = resolve_command(policy.command, env)
        LOGGER.debug("spawning %s %s (cwd=%s)", policy.command, " ".join(arguments), cwd)

        started = time.monotonic()
        try:
            # Bandit: argument vectors are fixed templates plus validated values.
            process = subprocess.Popen(  # nosec B603
                [executable, *arguments],
                cwd=str(cwd),
                env=env,
                stdin=subprocess.PIPE if options.stdin_bytes is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            raise ExecutionError(ErrorKind.PROCESS_SPAWN_FAILED, f"{policy.command}: {exc}") from exc

        overflow = threading.Event()
        if process.stdout is None or process.stderr is None:
            _stop(process, 0)
            raise ExecutionError(ErrorKind.PROCESS_SPAWN_FAILED, f"{policy.command}: output pipes unavailable")
        readers = [
            _CappedReader(process.stdout, options.max_output_bytes, overflow),
            _CappedReader(process.stderr, options.max_output_bytes, overflow),
        ]
        for reader in readers:
            reader.start()
        if options.stdin_bytes is not None and process.stdin is not None:
            threading.Thread(target=_feed_stdin, args=(process.stdin, options.stdin_bytes), daemon=True).start()

        deadline = started + options.timeout_ms / 1000
        grace = options.grace_period_ms / 1000
        timed_out = overflowed = cancelled = False
        while process.poll() is None:
            if overflow.is_set():
                overflowed = True
            elif options.cancel is not None and options.cancel.cancelled:
                cancelled = True
            elif time.monotonic() >= deadline:
                timed_out = True
            if timed_out or overflowed or cancelled:
                LOGGER.debug(
                    "stopping %s (timeout=%s overflow=%s cancelled=%s)", policy.command, timed_out, overflowed, cancelled
                )
                _stop(process, grace)
                break
            time.sleep(_POLL_INTERVAL)

        for reader in readers:
            reader.join(timeout=grace + _DRAIN_TIMEOUT)
        overflowed = overflowed or overflow.is_set()
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return ProcessResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=bytes(readers[0].buffer),
            stderr=bytes(readers[1].buffer),
            wall_time_ms=elapsed_ms,
            timed_out=timed_out,
            overflowed=overflowed,
            cancelled=cancelled,
        )


@dataclass(frozen=True, slots=True)
class BoundRunner:
    """Runner view fixed to one adapter's :class:`SandboxPolicy`."""

    policy: SandboxPolicy
    runner: ProcessRunner

    def run(self, argv: Sequence[str], options: RunOptions) -> ProcessResult:
        """Run the bound command with ``argv`` appended to the fixed prefix."""

        return self.runner.run(self.policy, argv, options)

    def environment(self) -> dict[str, str]:
        """Return the environment the bound command receives."""

        return self.runner.environment_for(self.policy)


__all__ = [
    "SHELL_METACHARACTERS",
    "BoundRunner",
    "CancellationToken",
    "ProcessResult",
    "ProcessRunner",
    "RunOptions",
    "SandboxPolicy",
    "build_environment",
    "check_argument",
    "resolve_command",
]
