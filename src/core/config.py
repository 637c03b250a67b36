from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass(slots=True)
class LoggingConfig:
    """Logging configuration from config.yml."""

    level: str = "INFO"
    log_max_mb: int = 20
    log_backup_count: int = 5


@dataclass(slots=True)
class DecoderConfig:
    """
    Settings for the external ESE decoder.

    Attributes:
        launcher: Command prefix used to start the decoder (e.g. ["wine"]).
            Empty means the decoder is executed directly, which requires Windows.
        poll_interval_s: How often a running decoder polls for cancellation
        timeout_s: Hard limit for one decoder run, None for no limit
    """

    launcher: List[str] = field(default_factory=list)
    poll_interval_s: float = 0.25
    timeout_s: Optional[float] = None


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration resolved from disk."""

    base_dir: Path
    tool_paths: Dict[str, Path]
    tool_roots: List[Path]
    temp_dir: Path
    logs_dir: Path
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)

    def to_json(self) -> str:
        """Serialize the configuration into a JSON string for run logs."""
        data = {
            "tool_paths": {name: str(path) for name, path in self.tool_paths.items()},
            "tool_roots": [str(root) for root in self.tool_roots],
            "temp_dir": str(self.temp_dir),
            "logs_dir": str(self.logs_dir),
            "decoder": {
                "launcher": list(self.decoder.launcher),
                "poll_interval_s": self.decoder.poll_interval_s,
                "timeout_s": self.decoder.timeout_s,
            },
        }
        return json.dumps(data, indent=2, sort_keys=True)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle) or {}
        if not isinstance(content, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level.")
        return content


def _resolve_path(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def load_app_config(base_dir: Path, config_path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from disk, providing sensible defaults."""

    if config_path is None:
        config_path = base_dir / "config" / "config.yml"
    overrides = _load_yaml(config_path)

    tool_paths = {
        name: _resolve_path(base_dir, str(value))
        for name, value in (overrides.get("tool_paths") or {}).items()
    }
    tool_roots = [
        _resolve_path(base_dir, str(value))
        for value in (overrides.get("tool_roots") or [base_dir / "tools"])
    ]

    temp_value = overrides.get("temp_dir")
    if temp_value:
        temp_dir = _resolve_path(base_dir, str(temp_value))
    else:
        temp_dir = Path(tempfile.gettempdir()) / "cachesifter"

    logs_value = overrides.get("logs_dir")
    logs_dir = _resolve_path(base_dir, str(logs_value)) if logs_value else base_dir / "logs"

    logging_cfg = overrides.get("logging") or {}
    logging_config = LoggingConfig(
        level=str(logging_cfg.get("level", "INFO")),
        log_max_mb=int(logging_cfg.get("log_max_mb", 20)),
        log_backup_count=int(logging_cfg.get("log_backup_count", 5)),
    )

    decoder_cfg = overrides.get("decoder") or {}
    launcher = decoder_cfg.get("launcher") or []
    if isinstance(launcher, str):
        launcher = launcher.split()
    timeout = decoder_cfg.get("timeout_s")
    decoder_config = DecoderConfig(
        launcher=[str(part) for part in launcher],
        poll_interval_s=float(decoder_cfg.get("poll_interval_s", 0.25)),
        timeout_s=float(timeout) if timeout is not None else None,
    )

    return AppConfig(
        base_dir=base_dir,
        tool_paths=tool_paths,
        tool_roots=tool_roots,
        temp_dir=temp_dir,
        logs_dir=logs_dir,
        logging=logging_config,
        decoder=decoder_config,
    )
