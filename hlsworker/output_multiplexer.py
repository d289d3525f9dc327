import logging
import threading
from typing import IO, Callable, Iterator, Optional

from hlsworker.exceptions import StreamReadError
from hlsworker.progress_parser import PROGRESS_KEY, ProgressTracker

log = logging.getLogger(__name__)

# Encoder diagnostics are forwarded here, separately from the worker's own messages
encoder_log = logging.getLogger("hlsworker.encoder")

STDERR_PREFIX = "[stderr] "


class ProcessOutputMultiplexer:
    """
    Drains the stdout and stderr pipes of one subprocess on two threads.

    Stdout carries encoder progress as blocks of "key=value" lines, each block
    closed by a "progress=..." line; anything else on stdout and every stderr
    line is diagnostic text. Diagnostics are collected in `logs` and forwarded
    to the encoder log sink and the optional `on_log` callback.

    Read failures are recorded as log entries and never raised: only the
    process exit code decides success. Call `join()` after the process has
    exited and before reading `logs` or the tracker's final block.
    """

    def __init__(self,
                 tracker: ProgressTracker,
                 on_log: Optional[Callable[[str], None]] = None):
        self.tracker = tracker
        self.on_log = on_log
        self.logs: list[str] = []
        self._logs_lock = threading.Lock()
        self._block: dict[str, str] = {}
        self._threads: list[threading.Thread] = []

    def start(self, stdout: IO[bytes], stderr: IO[bytes]) -> None:
        self._threads = [
            threading.Thread(target=self._drain, args=(stdout, "stdout", self._handle_stdout_line),
                             name="encoder-stdout", daemon=True),
            threading.Thread(target=self._drain, args=(stderr, "stderr", self._handle_stderr_line),
                             name="encoder-stderr", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def record_log(self, line: str) -> None:
        with self._logs_lock:
            self.logs.append(line)
        encoder_log.info(line)
        if self.on_log is not None:
            try:
                self.on_log(line)
            except Exception as e:
                log.warning(f"Log sink rejected encoder output line: {e}")

    def _drain(self, stream: IO[bytes], origin: str, handle_line: Callable[[str], None]) -> None:
        try:
            for line in _iter_lines(stream, origin):
                handle_line(line)
        except StreamReadError as e:
            self.record_log(f"[{origin} read error] {e}")
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def _handle_stdout_line(self, line: str) -> None:
        trimmed = line.strip()
        if not trimmed:
            return

        eq = trimmed.find("=")
        if eq == -1:
            self.record_log(trimmed)
            return

        key = trimmed[:eq]
        self._block[key] = trimmed[eq + 1:]

        if key == PROGRESS_KEY:
            block, self._block = self._block, {}
            try:
                self.tracker.handle_block(block)
            except Exception as e:
                self.record_log(f"[progress handler error] {e}")

    def _handle_stderr_line(self, line: str) -> None:
        self.record_log(f"{STDERR_PREFIX}{line}")


def _iter_lines(stream: IO[bytes], origin: str) -> Iterator[str]:
    while True:
        try:
            raw = stream.readline()
        except (OSError, ValueError) as e:
            raise StreamReadError(f"{origin}: {e}") from e
        if not raw:
            return
        yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
