import time
import pytest
from pathlib import Path
from unittest.mock import patch
from streamrec.config.models import TranscodeConfig
from streamrec.domain.errors import TranscodeError
from streamrec.infrastructure.hls import HlsTranscodeAdapter


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "make-hls.sh"
    path.write_text("#!/usr/bin/env bash\nexit 0\n")
    return path


def test_missing_script_fails_fast(tmp_path):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=tmp_path / "absent.sh"))
    with patch("subprocess.Popen") as mock_popen:
        with pytest.raises(TranscodeError) as exc:
            adapter.transcode(Path("show.mp4"))

    assert exc.value.kind == "configuration"
    assert exc.value.exit_code is None
    assert "absent.sh" in str(exc.value)
    mock_popen.assert_not_called()


def test_command_passes_input(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script))
    assert adapter._build_command(Path("/rec/show.mp4")) == ["bash", str(script), "/rec/show.mp4"]


def test_transcode_success(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script))
    with patch("subprocess.Popen") as mock_popen:
        process = mock_popen.return_value
        process.stdout = ["segment 1 written\n", "segment 2 written\n"]
        process.stderr = []
        process.returncode = 0

        adapter.transcode(Path("show.mp4"))

    assert mock_popen.called
    assert process.wait.called


def test_transcode_nonzero_exit(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script))
    with patch("subprocess.Popen") as mock_popen:
        process = mock_popen.return_value
        process.stdout = []
        process.stderr = ["show.mp4: Invalid data found when processing input\n"]
        process.returncode = 1

        with pytest.raises(TranscodeError) as exc:
            adapter.transcode(Path("show.mp4"))

    assert exc.value.kind == "exit"
    assert exc.value.exit_code == 1
    assert "Invalid data found" in exc.value.stderr_excerpt
    assert "exit code 1" in str(exc.value)


def test_stderr_excerpt_is_trailing(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script, stderr_excerpt_chars=10))
    with patch("subprocess.Popen") as mock_popen:
        process = mock_popen.return_value
        process.stdout = []
        process.stderr = ["x" * 50 + "\n", "last-line\n"]
        process.returncode = 2

        with pytest.raises(TranscodeError) as exc:
            adapter.transcode(Path("show.mp4"))

    assert exc.value.stderr_excerpt == "last-line\n"


def test_spawn_failure(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script, shell="no-such-shell"))
    with patch("subprocess.Popen", side_effect=FileNotFoundError("no-such-shell")):
        with pytest.raises(TranscodeError) as exc:
            adapter.transcode(Path("show.mp4"))

    assert exc.value.kind == "spawn"
    assert exc.value.exit_code is None


def _write_script(tmp_path, body):
    path = tmp_path / "transcode.sh"
    path.write_text("#!/usr/bin/env bash\n" + body + "\n")
    return path


def test_non_utf8_output_does_not_fail_transcode(tmp_path):
    script = _write_script(tmp_path, "printf 'title: \\xff\\xfe caf\\xe9\\n'\nprintf 'tag \\xff\\n' >&2\nexit 0")
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script))

    adapter.transcode(tmp_path / "show.mp4")


def test_non_utf8_stderr_kept_in_excerpt(tmp_path):
    script = _write_script(tmp_path, "printf 'bad \\xff input\\n' >&2\nexit 3")
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script))

    with pytest.raises(TranscodeError) as exc:
        adapter.transcode(tmp_path / "show.mp4")

    assert exc.value.exit_code == 3
    assert "bad \ufffd input" in exc.value.stderr_excerpt


def test_timeout_kills_child_processes(tmp_path):
    script = _write_script(tmp_path, "sleep 4\necho done")
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script, timeout_seconds=0.5))

    started = time.monotonic()
    with pytest.raises(TranscodeError) as exc:
        adapter.transcode(tmp_path / "show.mp4")
    elapsed = time.monotonic() - started

    assert exc.value.kind == "timeout"
    assert "timed out" in str(exc.value)
    assert elapsed < 2


def test_stderr_tail_is_bounded(script):
    adapter = HlsTranscodeAdapter(TranscodeConfig(script_path=script, stderr_excerpt_chars=100))
    with patch("subprocess.Popen") as mock_popen:
        process = mock_popen.return_value
        process.stdout = []
        process.stderr = [f"frame={i} fps=25 time=00:00:{i:02d}\n" for i in range(5000)]
        process.returncode = 1

        with pytest.raises(TranscodeError) as exc:
            adapter.transcode(Path("show.mp4"))

    assert len(exc.value.stderr_excerpt) == 100
    assert exc.value.stderr_excerpt.endswith("frame=4999 fps=25 time=00:00:4999\n")
