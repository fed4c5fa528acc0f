import json

from config import DEFAULT_API_URL, VenueConfig


def test_load_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("CVEX_API_KEY", raising=False)
    config = VenueConfig.load(tmp_path / "config.json", use_env=False)

    assert config.api_url == DEFAULT_API_URL
    assert config.api_key == ""
    assert config.recv_window == 30000


def test_save_and_load_round_trip_camel_case(tmp_path):
    path = tmp_path / "nested" / "config.json"
    VenueConfig(api_key="abc", private_key_path="/keys/me.pem", recv_window=15000).save(path)

    stored = json.loads(path.read_text())
    assert stored["apiKey"] == "abc"
    assert stored["privateKeyPath"] == "/keys/me.pem"
    assert not path.with_suffix(".tmp").exists()

    loaded = VenueConfig.load(path, use_env=False)
    assert loaded.api_key == "abc"
    assert loaded.recv_window == 15000


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"apiUrl": "https://file.example/", "apiKey": "from-file"}))
    monkeypatch.setenv("CVEX_API_KEY", "from-env")
    monkeypatch.setenv("CVEX_RECV_WINDOW", "5000")

    config = VenueConfig.load(path)

    assert config.api_url == "https://file.example"
    assert config.api_key == "from-env"
    assert config.recv_window == 5000


def test_corrupt_file_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    config = VenueConfig.load(path, use_env=False)

    assert config.api_key == ""
    assert "corrupted" in caplog.text


def test_malformed_numeric_environment_keeps_current_value(tmp_path, monkeypatch, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"recvWindow": 12000}))
    monkeypatch.setenv("CVEX_RECV_WINDOW", "soon")
    monkeypatch.setenv("CVEX_TIMEOUT", "fast")

    config = VenueConfig.load(path)

    assert config.recv_window == 12000
    assert config.timeout == VenueConfig().timeout
    assert "CVEX_RECV_WINDOW" in caplog.text
    assert "CVEX_TIMEOUT" in caplog.text


def test_malformed_numeric_file_value_keeps_default(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"recvWindow": "thirty", "apiKey": "abc"}))

    config = VenueConfig.load(path, use_env=False)

    assert config.recv_window == 30000
    assert config.api_key == "abc"
    assert "recvWindow" in caplog.text


def test_redacted_masks_secrets():
    view = VenueConfig(api_key="secret", openai_api_key="").redacted()

    assert view["api_key"] == "********"
    assert view["openai_api_key"] == "Not set"
    assert view["private_key_path"] == "Not set"
    assert "secret" not in json.dumps(view)
