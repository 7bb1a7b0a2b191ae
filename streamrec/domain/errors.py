"""
Error types raised by the capture/transcode pipeline and the schedule store.

Pipeline errors never reach the caller of submit(); the scheduler turns them
into the job's error_detail. Not-found and not-cancellable are plain
None/False results, not exceptions.
"""
from pathlib import Path
from typing import Optional


class StreamrecError(Exception):
    """Base exception for all streamrec failures."""
    pass


class LaunchError(StreamrecError):
    """The external capture process could not be started."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"failed to start capture for {name}: {reason}")


class TranscodeError(StreamrecError):
    """The transcoder could not be started or exited non-zero.

    kind is one of "configuration", "spawn", "exit" or "timeout".
    """

    def __init__(
        self,
        input_path: Path,
        kind: str,
        exit_code: Optional[int] = None,
        stderr_excerpt: str = "",
        reason: Optional[str] = None,
    ):
        self.input_path = input_path
        self.kind = kind
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
        if reason is None:
            if exit_code is not None:
                reason = f"transcoding failed with exit code {exit_code}"
            else:
                reason = "transcoding failed"
        if stderr_excerpt:
            reason = f"{reason}: {stderr_excerpt.strip()}"
        super().__init__(reason)


class PersistenceError(StreamrecError):
    """Base exception for schedule store operations."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class PersistenceReadError(PersistenceError):
    """The snapshot exists but cannot be parsed. Fatal at startup."""
    pass


class PersistenceWriteError(PersistenceError):
    """The snapshot could not be written after a transition."""
    pass
