"""
Interactive attach: bridge a local terminal to a container's I/O stream.

An attach session runs four activities at once (interrupt watcher, remote to
local copy, local to remote copy, command execution). Each one reports a
single outcome to a shared queue; the first outcome ends the session.

Teardown runs on every exit path, innermost first: activities are told to
stop, the interrupt handler is restored, the terminal leaves raw mode and the
socket is shut down. The copy loops and the watcher stop on their own after
that. The command cannot be cancelled remotely; its thread is abandoned and
its late outcome lands in a queue nobody reads.
"""

import contextlib
import logging
import os
import queue
import select
import signal
import socket
import termios
import threading
import tty
from collections.abc import Callable, Generator, Sequence
from contextlib import ExitStack, contextmanager
from types import FrameType
from typing import IO, TYPE_CHECKING, Any, Protocol

from .errors import handle_errors
from .exceptions import ErrorOccurredError, NoContainerRunningError

if TYPE_CHECKING:
    from .handle import Handle

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
# Seconds between two checks of the stop flag while the terminal is idle.
_POLL_INTERVAL = 0.1

_ATTACH_PARAMS = {"stdin": 1, "stdout": 1, "stderr": 1, "stream": 1}

Outcome = BaseException | None


class TerminalControl(Protocol):
    """Raw-mode capability of the local terminal."""

    def make_raw(self, fd: int) -> Any:
        """Put ``fd`` in raw mode and return the previous mode."""
        ...

    def restore(self, fd: int, state: Any) -> None:
        """Bring ``fd`` back to a mode returned by ``make_raw``."""
        ...

    def is_terminal(self, fd: int) -> bool: ...


class PosixTerminal:
    """``TerminalControl`` backed by termios. Non-terminals are left alone."""

    def make_raw(self, fd: int) -> Any:
        if not os.isatty(fd):
            return None
        state = termios.tcgetattr(fd)
        tty.setraw(fd)
        return state

    def restore(self, fd: int, state: Any) -> None:
        if state is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, state)

    def is_terminal(self, fd: int) -> bool:
        return os.isatty(fd)


@contextmanager
def raw_mode(terminal: TerminalControl, fd: int) -> Generator[None, None, None]:
    """Keep ``fd`` in raw mode for the duration of the block."""
    state = terminal.make_raw(fd)
    try:
        yield
    finally:
        terminal.restore(fd, state)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class AttachSession:
    """
    One interactive session between a local terminal and a container.

    Parameters
    ----------
    handle : Handle
        Session handle used for every engine call
    container : str
        Container ID or name
    command : Sequence[str]
        Command to execute inside the container
    file : IO
        Local terminal (anything with ``fileno()``)
    terminal : TerminalControl, optional
        Raw-mode capability (default: ``PosixTerminal``)
    """

    method = "terminal"

    def __init__(
        self,
        handle: "Handle",
        container: str,
        command: Sequence[str],
        file: IO[Any],
        terminal: TerminalControl | None = None,
    ) -> None:
        self.handle = handle
        self.container = container
        self.command = list(command)
        self.fd = file.fileno()
        self.terminal = terminal or PosixTerminal()
        self._done: queue.Queue[Outcome] = queue.Queue()
        self._interrupted = threading.Event()
        self._stopping = threading.Event()

    def run(self) -> None:
        """
        Run the session until its first activity finishes.

        Raises
        ------
        RemoteCallError
            If preparing the session failed, or the activity that finished
            first failed
        OSError
            If a copy loop failed first
        """
        sock = self._open_socket()

        with ExitStack() as stack:
            stack.callback(self._close_socket, sock)
            stack.enter_context(raw_mode(self.terminal, self.fd))
            stack.enter_context(self._interrupt_subscription())
            stack.callback(self._stop)

            self._spawn("interrupt", self._watch_interrupt)
            self._spawn("remote-to-local", lambda: self._copy_remote_to_local(sock))
            self._spawn("local-to-remote", lambda: self._copy_local_to_remote(sock))
            self._spawn("exec", self._run_command)

            outcome = self._first_outcome()

        if outcome is not None:
            raise outcome

    # Preparing

    def _open_socket(self) -> socket.socket:
        api = self.handle.api
        with handle_errors(self.method, kind="container", name=self.container):
            info = api.inspect_container(self.container)
        if not (info.get("State") or {}).get("Running"):
            raise NoContainerRunningError(self.method, self.container)

        with handle_errors(self.method, kind="container", name=self.container):
            response = api.attach_socket(self.container, params=_ATTACH_PARAMS)
        # The SDK hands back a SocketIO wrapper around the connection.
        sock: socket.socket = getattr(response, "_sock", response)
        sock.setblocking(True)
        logger.info(f"attached to {self.container}")
        return sock

    # Streaming

    def _spawn(self, name: str, activity: Callable[[], Outcome]) -> None:
        def report() -> None:
            try:
                outcome = activity()
            except Exception as e:
                outcome = e
            logger.debug(f"attach activity {name} finished: {outcome!r}")
            self._done.put(outcome)

        threading.Thread(target=report, name=f"attach-{name}", daemon=True).start()

    def _first_outcome(self) -> Outcome:
        # A bounded wait lets the main thread run its signal handlers.
        while True:
            try:
                return self._done.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue

    def _watch_interrupt(self) -> Outcome:
        self._interrupted.wait()
        return None

    def _copy_remote_to_local(self, sock: socket.socket) -> Outcome:
        while True:
            data = sock.recv(_CHUNK_SIZE)
            if not data:
                return None
            _write_all(self.fd, data)

    def _copy_local_to_remote(self, sock: socket.socket) -> Outcome:
        while not self._stopping.is_set():
            readable, _, _ = select.select([self.fd], [], [], _POLL_INTERVAL)
            if not readable:
                continue
            data = os.read(self.fd, _CHUNK_SIZE)
            if not data:
                return None
            sock.sendall(data)
        return None

    def _run_command(self) -> Outcome:
        tty_enabled = self.terminal.is_terminal(self.fd)
        result = self.handle.exec(self.container, self.command, tty=tty_enabled, privileged=True)
        if result.output and not self._stopping.is_set():
            _write_all(self.fd, result.output)
        if result.exit_code != 0:
            raise ErrorOccurredError(
                self.method, f"command exited with code {result.exit_code}"
            )
        return None

    # Teardown

    @contextmanager
    def _interrupt_subscription(self) -> Generator[None, None, None]:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("not on the main thread, interrupts are not watched")
            yield
            return

        previous = signal.signal(signal.SIGINT, self._on_interrupt)
        # None means the handler was not installed from Python.
        if previous is None:
            previous = signal.default_int_handler
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)

    def _on_interrupt(self, signum: int, frame: FrameType | None) -> None:
        self._interrupted.set()

    def _stop(self) -> None:
        self._stopping.set()
        # releases the watcher
        self._interrupted.set()

    def _close_socket(self, sock: socket.socket) -> None:
        # the peer may already be gone
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        sock.close()
        logger.info(f"detached from {self.container}")
