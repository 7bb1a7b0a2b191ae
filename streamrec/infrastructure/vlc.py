import logging
import shutil
import subprocess
from pathlib import Path
from typing import List
from streamrec.config.models import CaptureConfig
from streamrec.domain.errors import LaunchError
from streamrec.domain.models import check_output_name

class VlcCaptureAdapter:
    """Starts VLC in a detached screen session to record a stream for a fixed duration.

    Fire-and-forget: VLC enforces the duration itself through --run-time and
    the adapter never waits for it. Whether the capture actually succeeded is
    not observable here.
    """

    def __init__(self, config: CaptureConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def output_path_for(self, name: str) -> Path:
        try:
            check_output_name(name)
        except ValueError as e:
            raise LaunchError(name, str(e)) from e
        return self.config.recordings_dir / f"{name}{self.config.extension}"

    def _build_command(self, source: str, output_path: Path, duration_seconds: int) -> List[str]:
        """Constructs the VLC (optionally screen-wrapped) command line."""
        cmd = [
            self.config.vlc_binary,
            "-I", "dummy",
            source,
            f"--sout=#standard{{access=file,mux=ts,dst={output_path}}}",
            f"--run-time={duration_seconds}",
            "vlc://quit",
        ]
        if self.config.use_screen:
            cmd = [self.config.screen_binary, "-dmS", self.config.screen_session] + cmd
        return cmd

    def launch(self, source: str, name: str, duration_seconds: int) -> Path:
        """Spawns the capture and returns the path VLC will write to."""
        output_path = self.output_path_for(name)
        cmd = self._build_command(source, output_path, duration_seconds)

        for executable in dict.fromkeys([cmd[0], self.config.vlc_binary]):
            if shutil.which(executable) is None:
                raise LaunchError(name, f"executable not found: {executable}")

        self.logger.info(f"CAPTURE_START: {name} source={source} duration={duration_seconds}s output={output_path}")
        self.logger.debug(f"CAPTURE_CMD: {cmd}")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchError(name, str(e)) from e

        return output_path
