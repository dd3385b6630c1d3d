"""TOML configuration loader for the rewards application."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class CaptureConfig:
    enable_ocr: bool = True
    enable_ai: bool = False
    enable_fraud_detection: bool = True
    camera_index: int = 0
    save_dir: str = "/tmp/evuka"
    compress_uploads: bool = True
    max_image_dimension: int = 1920
    jpeg_quality: int = 85


@dataclass
class TesseractConfig:
    lang: str = "eng"
    cmd: str = ""  # path to the tesseract binary, empty = PATH lookup


@dataclass
class ClaudeExtractionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiExtractionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class ExtractionConfig:
    ai_backend: str = "claude"
    min_confidence: float = 30.0
    timeout: float = 30.0
    tesseract: TesseractConfig = field(default_factory=TesseractConfig)
    claude: ClaudeExtractionConfig = field(default_factory=ClaudeExtractionConfig)
    gemini: GeminiExtractionConfig = field(default_factory=GeminiExtractionConfig)


@dataclass
class DuplicateConfig:
    threshold: float = 0.7
    history_size: int = 50


@dataclass
class DatabaseConfig:
    path: str = "~/.config/evuka/rewards.db"


@dataclass
class TOTPConfig:
    issuer: str = "eVuka Rewards"
    digits: int = 6
    interval: int = 30
    valid_window: int = 1


@dataclass
class AuthConfig:
    max_login_attempts: int = 5
    lockout_seconds: float = 300.0


@dataclass
class SyncConfig:
    server_url: str = ""
    timeout: float = 30.0


@dataclass
class SchedulerConfig:
    challenges_schedule: str = "0 0 * * *"
    monthly_reset_schedule: str = "0 0 1 * *"
    sync_schedule: str = "*/15 * * * *"


@dataclass
class RewardsConfig:
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    totp: TOTPConfig = field(default_factory=TOTPConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_config(path: str | Path | None = None) -> RewardsConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys, the database path and the sync server can be supplied via
    environment variables when the file leaves them empty.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cap = raw.get("capture", {})
    ext = raw.get("extraction", {})
    dup = raw.get("duplicates", {})
    dbs = raw.get("database", {})
    otp = raw.get("totp", {})
    ath = raw.get("auth", {})
    syn = raw.get("sync", {})
    sch = raw.get("scheduler", {})

    tess_cfg = ext.get("tesseract", {})
    claude_cfg = ext.get("claude", {})
    gemini_cfg = ext.get("gemini", {})

    # Resolve secrets: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )
    db_path = dbs.get("path", "") or os.environ.get(
        "EVUKA_DB_PATH", "~/.config/evuka/rewards.db"
    )
    server_url = syn.get("server_url", "") or os.environ.get("EVUKA_SYNC_URL", "")

    return RewardsConfig(
        capture=CaptureConfig(
            enable_ocr=cap.get("enable_ocr", True),
            enable_ai=cap.get("enable_ai", False),
            enable_fraud_detection=cap.get("enable_fraud_detection", True),
            camera_index=cap.get("camera_index", 0),
            save_dir=cap.get("save_dir", "/tmp/evuka"),
            compress_uploads=cap.get("compress_uploads", True),
            max_image_dimension=cap.get("max_image_dimension", 1920),
            jpeg_quality=cap.get("jpeg_quality", 85),
        ),
        extraction=ExtractionConfig(
            ai_backend=ext.get("ai_backend", "claude"),
            min_confidence=ext.get("min_confidence", 30.0),
            timeout=ext.get("timeout", 30.0),
            tesseract=TesseractConfig(
                lang=tess_cfg.get("lang", "eng"),
                cmd=tess_cfg.get("cmd", ""),
            ),
            claude=ClaudeExtractionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiExtractionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        duplicates=DuplicateConfig(
            threshold=dup.get("threshold", 0.7),
            history_size=dup.get("history_size", 50),
        ),
        database=DatabaseConfig(path=db_path),
        totp=TOTPConfig(
            issuer=otp.get("issuer", "eVuka Rewards"),
            digits=otp.get("digits", 6),
            interval=otp.get("interval", 30),
            valid_window=otp.get("valid_window", 1),
        ),
        auth=AuthConfig(
            max_login_attempts=ath.get("max_login_attempts", 5),
            lockout_seconds=ath.get("lockout_seconds", 300.0),
        ),
        sync=SyncConfig(
            server_url=server_url,
            timeout=syn.get("timeout", 30.0),
        ),
        scheduler=SchedulerConfig(
            challenges_schedule=sch.get("challenges_schedule", "0 0 * * *"),
            monthly_reset_schedule=sch.get("monthly_reset_schedule", "0 0 1 * *"),
            sync_schedule=sch.get("sync_schedule", "*/15 * * * *"),
        ),
    )
