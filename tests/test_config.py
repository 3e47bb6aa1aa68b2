"""Tests for the configuration store."""

import threading

import pytest
import yaml

from portview import config as config_store
from portview.config import (
    Config,
    PortRange,
    default_path,
    format_duration,
    load,
    parse_duration,
    save,
)
from portview.errors import ConfigError


class TestDefaults:
    """Tests for default configuration values."""

    def test_default_values(self):
        """Test defaults match the documented values."""
        cfg = Config()

        assert cfg.refresh_interval == 3.0
        assert cfg.port_range == PortRange(1024, 65535)
        assert cfg.labels == {}
        assert cfg.hidden is None

    def test_default_instances_do_not_share_labels(self):
        """Test each default Config gets its own labels mapping."""
        assert Config().labels is not Config().labels

    def test_is_frozen(self):
        """Test Config is immutable."""
        cfg = Config()
        try:
            cfg.refresh_interval = 10.0
            raise AssertionError("Should have raised FrozenInstanceError")
        except AttributeError:
            pass


class TestDefaultPath:
    """Tests for default_path."""

    def test_with_xdg_set(self, tmp_path, monkeypatch):
        """Test XDG_CONFIG_HOME is honoured."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert default_path() == tmp_path / "portview" / "config.yaml"

    def test_without_xdg(self, tmp_path, monkeypatch):
        """Test the fallback to ~/.config."""
        monkeypatch.setenv("XDG_CONFIG_HOME", "")
        monkeypatch.setenv("HOME", str(tmp_path))

        assert default_path() == tmp_path / ".config" / "portview" / "config.yaml"


class TestMutations:
    """Tests for the copy-on-write mutation methods."""

    def test_with_label(self):
        """Test setting and overwriting a label."""
        cfg = Config().with_label(8080, "web-server")
        assert cfg.label_for(8080) == "web-server"

        cfg = cfg.with_label(8080, "api-gateway")
        assert cfg.label_for(8080) == "api-gateway"

    def test_with_label_leaves_original(self):
        """Test the receiver is not modified."""
        original = Config()
        original.with_label(8080, "web")

        assert original.labels == {}

    def test_without_label(self):
        """Test removing a label."""
        cfg = Config().with_label(3000, "frontend").without_label(3000)

        assert 3000 not in cfg.labels
        assert cfg.label_for(3000) == ""

    def test_without_missing_label(self):
        """Test removing an absent label is a no-op."""
        cfg = Config(labels={80: "http"})

        assert cfg.without_label(3000).labels == {80: "http"}

    def test_is_hidden(self):
        """Test hidden membership."""
        cfg = Config()
        assert not cfg.is_hidden(9090)

        assert cfg.with_hidden_toggled(9090).is_hidden(9090)

    def test_toggle_hidden_twice(self):
        """Test toggling twice unhides the port."""
        cfg = Config().with_hidden_toggled(4000)
        assert cfg.is_hidden(4000)

        cfg = cfg.with_hidden_toggled(4000)
        assert not cfg.is_hidden(4000)

    @pytest.mark.parametrize(
        ("port", "expected"),
        [(1023, False), (1024, True), (65535, True), (65536, False)],
    )
    def test_in_port_range(self, port, expected):
        """Test the default range bounds are inclusive."""
        assert Config().in_port_range(port) is expected


class TestDurations:
    """Tests for duration parsing and formatting."""

    @pytest.mark.parametrize(
        ("text", "seconds"),
        [("3s", 3.0), ("500ms", 0.5), ("1m30s", 90.0), ("1h", 3600.0), (5, 5.0), (2.5, 2.5)],
    )
    def test_parse(self, text, seconds):
        """Test accepted duration forms."""
        assert parse_duration(text) == seconds

    @pytest.mark.parametrize("text", ["", "fast", "3x", "s3", "-1s", 0, True, None])
    def test_parse_rejects(self, text):
        """Test invalid durations raise ConfigError."""
        with pytest.raises(ConfigError):
            parse_duration(text)

    @pytest.mark.parametrize(
        ("seconds", "text"),
        [(3.0, "3s"), (0.5, "500ms"), (90.0, "1m30s"), (3600.0, "1h"), (10.0, "10s")],
    )
    def test_format(self, seconds, text):
        """Test durations are written in their shortest form."""
        assert format_duration(seconds) == text


class TestSave:
    """Tests for save."""

    def test_creates_directory_and_file(self, tmp_path):
        """Test nested parent directories are created."""
        path = tmp_path / "nested" / "deep" / "dir" / "config.yaml"

        save(path, Config())

        assert path.is_file()
        assert path.stat().st_size > 0

    def test_written_document(self, tmp_path):
        """Test the YAML document has the expected shape."""
        path = tmp_path / "config.yaml"
        cfg = Config(
            refresh_interval=5.0,
            port_range=PortRange(2000, 50000),
            labels={8080: "web", 3000: "api"},
            hidden=(22, 443),
        )

        save(path, cfg)
        data = yaml.safe_load(path.read_text())

        assert data == {
            "refresh_interval": "5s",
            "port_range": {"min": 2000, "max": 50000},
            "labels": {3000: "api", 8080: "web"},
            "hidden": [22, 443],
        }

    def test_save_then_load(self, tmp_path):
        """Test a saved config loads back unchanged."""
        path = tmp_path / "config.yaml"
        cfg = Config(
            refresh_interval=5.0,
            port_range=PortRange(2000, 50000),
            labels={8080: "web", 3000: "api"},
            hidden=(22, 443),
        )

        save(path, cfg)

        assert load(path) == cfg

    def test_overwrites_existing_file(self, tmp_path):
        """Test a second save fully replaces the first."""
        path = tmp_path / "config.yaml"
        save(path, Config().with_label(9090, "first-service"))
        second = Config(
            refresh_interval=10.0,
            port_range=PortRange(3000, 40000),
            labels={4000: "second-service"},
            hidden=(80,),
        )

        save(path, second)
        loaded = load(path)

        assert loaded.labels == {4000: "second-service"}
        assert loaded.hidden == (80,)
        assert loaded.refresh_interval == 10.0

    def test_leaves_no_temp_files(self, tmp_path):
        """Test only the config file remains after saving."""
        save(tmp_path / "config.yaml", Config())

        assert [p.name for p in tmp_path.iterdir()] == ["config.yaml"]

    def test_unwritable_location_raises(self, tmp_path):
        """Test write failures become ConfigError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(ConfigError):
            save(blocker / "config.yaml", Config())


class TestLoad:
    """Tests for load."""

    def test_missing_file_returns_defaults(self, tmp_path):
        """Test a missing file is not an error."""
        assert load(tmp_path / "missing.yaml") == Config()

    def test_empty_file_returns_defaults(self, tmp_path):
        """Test an empty file yields defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load(path) == Config()

    def test_parses_all_fields(self, tmp_path):
        """Test every field is read."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "refresh_interval: 5s\n"
            "port_range:\n"
            "  min: 2000\n"
            "  max: 9000\n"
            "labels:\n"
            '  8080: "web"\n'
            '  3000: "api"\n'
            "hidden:\n"
            "  - 22\n"
            "  - 443\n"
        )

        cfg = load(path)

        assert cfg.refresh_interval == 5.0
        assert cfg.port_range == PortRange(2000, 9000)
        assert cfg.labels == {8080: "web", 3000: "api"}
        assert cfg.hidden == (22, 443)

    def test_partial_file_merges_with_defaults(self, tmp_path):
        """Test absent fields keep their defaults."""
        path = tmp_path / "config.yaml"
        path.write_text('labels:\n  5432: "postgres"\n')

        cfg = load(path)

        assert cfg.refresh_interval == 3.0
        assert cfg.port_range == PortRange(1024, 65535)
        assert cfg.labels == {5432: "postgres"}
        assert cfg.hidden is None

    def test_partial_port_range(self, tmp_path):
        """Test a single port_range bound overlays the default."""
        path = tmp_path / "config.yaml"
        path.write_text("port_range:\n  min: 0\n")

        assert load(path).port_range == PortRange(0, 65535)

    def test_empty_labels_replace_default(self, tmp_path):
        """Test an explicit empty labels map is accepted."""
        path = tmp_path / "config.yaml"
        path.write_text("labels: {}\n")

        assert load(path).labels == {}

    @pytest.mark.parametrize(
        "content",
        [
            "{{{not valid yaml: [}",
            "- just\n- a list\n",
            "refresh_interval: soon\n",
            "labels:\n  http: web\n",
            "hidden: 22\n",
            "port_range: [1, 2]\n",
        ],
    )
    def test_invalid_file_raises(self, tmp_path, content):
        """Test malformed documents raise ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError):
            load(path)


def test_saves_are_serialised(tmp_path, monkeypatch):
    """Test concurrent saves never write at the same time."""
    active = 0
    overlap = False
    real_replace = config_store.os.replace
    guard = threading.Lock()

    def slow_replace(src, dst):
        nonlocal active, overlap
        with guard:
            active += 1
            overlap = overlap or active > 1
        threading.Event().wait(0.05)
        real_replace(src, dst)
        with guard:
            active -= 1

    monkeypatch.setattr(config_store.os, "replace", slow_replace)
    path = tmp_path / "config.yaml"
    threads = [
        threading.Thread(target=save, args=(path, Config().with_label(8000 + i, f"svc{i}")))
        for i in range(5)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not overlap
    assert len(load(path).labels) == 1
