import pytest
import shutil
import subprocess
import yaml
from pathlib import Path
from unittest.mock import MagicMock
from upmix.config.models import AppConfig
from upmix.infrastructure.event_bus import EventBus
from upmix.infrastructure.ffmpeg import FFmpegAdapter
from upmix.infrastructure.resources import ResourceHandle
from upmix.pipeline.orchestrator import Orchestrator

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "codec": "flac",
            "extensions": [".wav", ".flac"],
            "poll_interval_s": 0.01,
            "kill_timeout_s": 0.5,
            "debug": False,
        }
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "upmix.yaml"

    content = {
        'general': {
            'codec': 'pcm_s24le',
            'extensions': ['wav', 'AIFF'],
            'poll_interval_s': 0.05,
            'kill_timeout_s': 1.0,
            'debug': True,
        }
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def test_output_dir(tmp_path):
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir

@pytest.fixture
def audio_files(test_input_dir):
    """Creates a.wav, b.wav and c.wav in the input directory."""
    files = []
    for name in ("a.wav", "b.wav", "c.wav"):
        f = test_input_dir / name
        f.write_bytes(b"RIFF dummy stereo audio " * 50)
        files.append(f)
    return files

# ============================================================================
# Encoder Fixtures
# ============================================================================

class FakeFFmpeg:
    """Stands in for subprocess.Popen; outcome is chosen per input file name."""

    def __init__(self):
        self.results = {}
        self.commands = []
        self.processes = []
        self.on_launch = None

    def fail(self, name, returncode=1, stderr="Invalid data found when processing input"):
        self.results[name] = (returncode, stderr)

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        input_name = Path(cmd[cmd.index("-i") + 1]).name
        returncode, stderr = self.results.get(input_name, (0, ""))
        process = MagicMock()
        process.returncode = returncode
        process.communicate.return_value = ("", stderr)
        self.processes.append(process)
        if self.on_launch:
            self.on_launch(input_name, process)
        return process

    @property
    def inputs(self):
        return [Path(cmd[cmd.index("-i") + 1]).name for cmd in self.commands]

@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Patches Popen and encoder lookup so no real ffmpeg is needed."""
    fake = FakeFFmpeg()
    monkeypatch.setattr(subprocess, "Popen", fake)
    monkeypatch.setattr(shutil, "which", lambda cmd, *args, **kwargs: "/usr/bin/ffmpeg")
    return fake

@pytest.fixture
def orchestrator(sample_config, event_bus):
    adapter = FFmpegAdapter(
        poll_interval_s=sample_config.general.poll_interval_s,
        kill_timeout_s=sample_config.general.kill_timeout_s,
    )
    return Orchestrator(
        config=sample_config,
        event_bus=event_bus,
        resources=ResourceHandle(),
        ffmpeg_adapter=adapter,
    )

# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
