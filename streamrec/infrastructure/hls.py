import logging
import os
import signal
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import List
from streamrec.config.models import TranscodeConfig
from streamrec.domain.errors import TranscodeError

class HlsTranscodeAdapter:
    """Runs the HLS segmenting script over a finished capture and waits for it."""

    def __init__(self, config: TranscodeConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def _build_command(self, input_path: Path) -> List[str]:
        return [self.config.shell, str(self.config.script_path), str(input_path)]

    def _drain_stderr(self, stream, tail: deque):
        for line in stream:
            tail.extend(line)
            self.logger.info(f"[transcode stderr] {line.rstrip()}")

    def _kill_group(self, process: subprocess.Popen):
        # The script runs in its own session; ffmpeg and friends share its process group
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def transcode(self, input_path: Path):
        """Executes the transcoding script; raises TranscodeError unless it exits 0."""
        input_path = Path(input_path)
        if not self.config.script_path.exists():
            raise TranscodeError(
                input_path,
                kind="configuration",
                reason=f"transcoding script not found: {self.config.script_path}",
            )

        self.logger.info(f"TRANSCODE_START: {input_path}")
        cmd = self._build_command(input_path)
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                start_new_session=True,
            )
        except OSError as e:
            raise TranscodeError(input_path, kind="spawn", reason=f"failed to start transcoding: {e}") from e

        # stderr is drained on its own thread so a chatty script cannot block on a full pipe
        stderr_tail = deque(maxlen=self.config.stderr_excerpt_chars)
        stderr_thread = threading.Thread(
            target=self._drain_stderr, args=(process.stderr, stderr_tail), daemon=True
        )
        stderr_thread.start()

        timer = None
        timed_out = threading.Event()
        if self.config.timeout_seconds:
            def _kill():
                timed_out.set()
                self._kill_group(process)
            timer = threading.Timer(self.config.timeout_seconds, _kill)
            timer.daemon = True
            timer.start()

        try:
            for line in process.stdout:
                self.logger.info(f"[transcode] {line.rstrip()}")
            process.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if process.poll() is None:
                self._kill_group(process)
                process.wait()
            stderr_thread.join(timeout=5)

        excerpt = "".join(stderr_tail)

        if timed_out.is_set():
            self.logger.error(f"TRANSCODE_END: {input_path} status=timeout")
            raise TranscodeError(
                input_path,
                kind="timeout",
                exit_code=process.returncode,
                stderr_excerpt=excerpt,
                reason=f"transcoding timed out after {self.config.timeout_seconds}s",
            )
        if process.returncode != 0:
            self.logger.error(f"TRANSCODE_END: {input_path} status=failed code={process.returncode}")
            raise TranscodeError(input_path, kind="exit", exit_code=process.returncode, stderr_excerpt=excerpt)

        self.logger.info(f"TRANSCODE_END: {input_path} status=completed")
