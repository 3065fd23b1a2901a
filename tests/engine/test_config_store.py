from pathlib import Path

import pytest

from engine.config_store import ConfigStore
from engine.errors import ConfigFileError


def test_reads_sections_and_keys(tmp_path: Path):
    path = tmp_path / "bootstrap.config"
    path.write_text("[git]\ndefault_branch=main\n\n[docker]\nPort=3000\n", encoding="utf-8")
    store = ConfigStore(path)

    assert store.sections() == ["git", "docker"]
    assert store.get("git", "default_branch") == "main"
    assert store.get("docker", "port") == "3000"
    assert store.get("docker", "missing") is None
    assert store.get("nope", "port") is None
    assert store.section("docker") == {"port": "3000"}


def test_reading_never_creates_file(tmp_path: Path):
    path = tmp_path / ".bootstrap" / "bootstrap.config"
    store = ConfigStore(path)

    assert store.get("git", "default_branch") is None
    assert store.section("git") == {}
    assert not path.exists()


def test_set_and_save_round_trip(tmp_path: Path):
    path = tmp_path / ".bootstrap" / "bootstrap.config"
    store = ConfigStore(path)
    store.set("docker", "PORT", "8080")
    store.set("docker", "url", "http://localhost:%d")

    store.save()

    content = path.read_text(encoding="utf-8")
    assert "[docker]" in content
    assert "port=8080" in content
    assert ConfigStore(path).get("docker", "url") == "http://localhost:%d"


def test_repeated_key_keeps_last_value(tmp_path: Path):
    path = tmp_path / "bootstrap.config"
    path.write_text("[docker]\nport=3000\nport=8080\n", encoding="utf-8")

    assert ConfigStore(path).get("docker", "port") == "8080"


@pytest.mark.parametrize(
    "content",
    [
        b"indent=2\n",
        b"[docker]\nport\n[docker\n",
        b"[docker]\nname=caf\xe9\n",
    ],
)
def test_unreadable_file_raises_config_file_error(tmp_path: Path, content: bytes):
    path = tmp_path / "bootstrap.config"
    path.write_bytes(content)
    store = ConfigStore(path)

    with pytest.raises(ConfigFileError) as excinfo:
        store.get("docker", "port")

    assert excinfo.value.path == str(path)
    assert str(path) in str(excinfo.value)
