import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from hlsworker.exceptions import EncodeInvocationError
from hlsworker.model.encode_result import EncodeResult
from hlsworker.model.progress_update import ProgressUpdate
from hlsworker.os_resources import os_resources_utils
from hlsworker.output_multiplexer import ProcessOutputMultiplexer
from hlsworker.progress_parser import ProgressTracker

log = logging.getLogger(__name__)


class EncodeInvoker:
    """
    Runs the external encoder as `<command...> <abs input> <abs output dir>`
    and streams its output through a ProcessOutputMultiplexer.

    No timeout is applied: a hung encoder blocks the calling worker slot.
    """

    def __init__(self, encoder_command: list[str], process_priority: str = "normal"):
        self.encoder_command = list(encoder_command)
        self.process_priority = process_priority

    def compose_command(self, input_path: Path, output_dir: Path) -> list[str]:
        return [*self.encoder_command, str(input_path.resolve()), str(output_dir.resolve())]

    def run(self,
            input_path: Path,
            output_dir: Path,
            on_progress: Optional[Callable[[ProgressUpdate], None]] = None,
            on_log: Optional[Callable[[str], None]] = None,
            duration_seconds: Optional[float] = None,
            logs: Optional[list[str]] = None) -> EncodeResult:
        """
        Encode one upload into `output_dir`.

        Args:
            input_path: uploaded source file
            output_dir: directory the encoder writes the HLS tree into
            on_progress: receives every parsed progress block
            on_log: receives every diagnostic line
            duration_seconds: input duration, enables percent in progress updates
            logs: list that collects diagnostic lines; created if not given

        Returns:
            EncodeResult with the exit code, the terminal progress block and all logs

        Raises:
            EncodeInvocationError: the encoder could not be started or exited non-zero
        """
        command = self.compose_command(input_path, output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        tracker = ProgressTracker(on_progress=on_progress, duration_seconds=duration_seconds)
        multiplexer = ProcessOutputMultiplexer(tracker=tracker, on_log=on_log)
        if logs is not None:
            multiplexer.logs = logs

        log.info("Starting encoder...")
        log.info("|-Input file: %s", command[-2])
        log.info("|-Output directory: %s", command[-1])
        log.debug("|-Command: %s", shlex.join(command))

        start_time = time.perf_counter()
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            log.error(f"Encoder could not be started: {e}")
            multiplexer.record_log(f"[spawn error] {e}")
            raise EncodeInvocationError(f"Encoder could not be started: {e}") from e

        os_resources_utils.set_process_priority(process, self.process_priority)

        multiplexer.start(process.stdout, process.stderr)
        exit_code = process.wait()
        # The pipes may still hold buffered output after exit
        multiplexer.join()

        encoding_duration_seconds = time.perf_counter() - start_time

        if exit_code != 0:
            log.error("Encoder failed.")
            log.error("|-Exit code: %d", exit_code)
            log.error("|-Input file: %s", command[-2])
            raise EncodeInvocationError(f"Encoder failed with exit code {exit_code}", exit_code=exit_code)

        log.info("Encoder finished.")
        log.info("|-Output directory: %s", command[-1])
        log.info("|-Progress updates: %d", tracker.updates_count)
        log.info("|-Time: %.2f seconds", encoding_duration_seconds)

        return EncodeResult(
            output_dir=Path(command[-1]),
            exit_code=exit_code,
            final_block=tracker.final_block,
            logs=multiplexer.logs,
        )
