"""Tests for rewards config loading."""

from evuka.config import (
    CaptureConfig,
    DuplicateConfig,
    RewardsConfig,
    SchedulerConfig,
    TOTPConfig,
    load_config,
)


def test_load_config_defaults(monkeypatch):
    """Loading with no path returns all defaults."""
    for var in ("ANTHROPIC_API_KEY", "GEMINI_API_KEY", "EVUKA_DB_PATH", "EVUKA_SYNC_URL"):
        monkeypatch.delenv(var, raising=False)

    config = load_config()
    assert isinstance(config, RewardsConfig)
    assert config.capture.enable_ocr is True
    assert config.capture.enable_ai is False
    assert config.capture.enable_fraud_detection is True
    assert config.extraction.ai_backend == "claude"
    assert config.extraction.timeout == 30.0
    assert config.duplicates.threshold == 0.7
    assert config.duplicates.history_size == 50
    assert config.database.path == "~/.config/evuka/rewards.db"
    assert config.totp.issuer == "eVuka Rewards"
    assert config.totp.valid_window == 1
    assert config.auth.max_login_attempts == 5
    assert config.auth.lockout_seconds == 300.0
    assert config.sync.server_url == ""
    assert config.scheduler.challenges_schedule == "0 0 * * *"
    assert config.scheduler.monthly_reset_schedule == "0 0 1 * *"


def test_load_config_nonexistent_file():
    """Loading a nonexistent file returns defaults."""
    config = load_config("/nonexistent/path.toml")
    assert config.capture.enable_ocr is True


def test_load_config_from_toml(tmp_path, monkeypatch):
    """Loading a valid TOML file populates config."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    path = tmp_path / "evuka.toml"
    path.write_text(
        """\
[capture]
enable_ocr = false
enable_ai = true
enable_fraud_detection = false
camera_index = 2

[extraction]
ai_backend = "gemini"
min_confidence = 55.0

[extraction.gemini]
api_key = "test-key-123"
model = "gemini-pro"

[duplicates]
threshold = 0.8
history_size = 10

[database]
path = "/var/evuka/test.db"

[sync]
server_url = "https://rewards.example.com"

[scheduler]
challenges_schedule = "5 0 * * *"
"""
    )

    config = load_config(path)
    assert config.capture.enable_ocr is False
    assert config.capture.enable_ai is True
    assert config.capture.enable_fraud_detection is False
    assert config.capture.camera_index == 2
    assert config.extraction.ai_backend == "gemini"
    assert config.extraction.min_confidence == 55.0
    assert config.extraction.gemini.api_key == "test-key-123"
    assert config.extraction.gemini.model == "gemini-pro"
    assert config.duplicates.threshold == 0.8
    assert config.duplicates.history_size == 10
    assert config.database.path == "/var/evuka/test.db"
    assert config.sync.server_url == "https://rewards.example.com"
    assert config.scheduler.challenges_schedule == "5 0 * * *"
    # Unset keys keep their defaults
    assert config.scheduler.monthly_reset_schedule == "0 0 1 * *"


def test_env_vars_fill_empty_secrets(monkeypatch):
    """Environment variables are used when the file leaves values empty."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    monkeypatch.setenv("EVUKA_DB_PATH", "/tmp/env.db")
    monkeypatch.setenv("EVUKA_SYNC_URL", "http://localhost:8000")

    config = load_config()
    assert config.extraction.claude.api_key == "sk-env"
    assert config.database.path == "/tmp/env.db"
    assert config.sync.server_url == "http://localhost:8000"


def test_file_value_wins_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    path = tmp_path / "evuka.toml"
    path.write_text('[extraction.claude]\napi_key = "sk-file"\n')

    config = load_config(path)
    assert config.extraction.claude.api_key == "sk-file"


def test_dataclass_defaults():
    assert CaptureConfig().save_dir == "/tmp/evuka"
    assert DuplicateConfig().threshold == 0.7
    assert TOTPConfig().digits == 6
    assert SchedulerConfig().sync_schedule == "*/15 * * * *"
