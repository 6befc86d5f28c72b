import pytest
import yaml

from msgmux.bootstrap.deps import get_settings
from msgmux.core.routing.mux import DispatchMux
from tests.helpers import Recorder


@pytest.fixture
def mux() -> DispatchMux:
    return DispatchMux()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv("MSGMUXCONFIG", raising=False)
    monkeypatch.delenv("MSGMUX_EMPTY_REGISTRY", raising=False)
    monkeypatch.delenv("MSGMUX_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def config_file(clean_env):
    file = clean_env / "msgmux.yaml"
    data = {
        "empty_registry": "fail",
        "log_level": "DEBUG",
    }
    file.write_text(yaml.dump(data))
    return file
