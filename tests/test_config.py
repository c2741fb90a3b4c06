"""Tests for configuration loading."""
from studio import config as config_module
from studio.config import AppConfig, OllamaConfig, load_config, save_config


class TestLoadConfig:
    """Tests for load_config and environment overrides."""

    def test_defaults(self):
        config = AppConfig()

        assert config.ollama.base_url == "http://localhost:11434"
        assert config.ollama.default_model == "qwen2.5-coder:1.5b"
        assert config.server.port == 14000
        assert config.server.session_ttl == 3600
        assert config.chat.title_length == 30

    def test_port_from_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        assert load_config().server.port == 8080

    def test_invalid_port_is_ignored(self, monkeypatch):
        monkeypatch.setenv("PORT", "not-a-port")
        assert load_config().server.port == 14000

    def test_ollama_host_gets_scheme(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "10.0.0.5:11434/")
        assert load_config().ollama.base_url == "http://10.0.0.5:11434"

    def test_saved_file_is_read_back(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "_config_dir", tmp_path)
        monkeypatch.setattr(config_module, "_config_file", tmp_path / "config.json")
        save_config(AppConfig(ollama=OllamaConfig(temperature=0.1)))

        assert load_config().ollama.temperature == 0.1

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "_config_dir", tmp_path)
        monkeypatch.setattr(config_module, "_config_file", tmp_path / "config.json")
        (tmp_path / "config.json").write_text("{broken", encoding="utf-8")

        assert load_config().ollama.temperature == 0.7
