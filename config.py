"""
Central configuration for the receiving service.

All paths and tunables are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/receiving_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_DB_PATH    = DEFAULT_OUTPUT_DIR / "receiving.db"
DEFAULT_EXPORT_DIR = DEFAULT_OUTPUT_DIR / "export"
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() != "false"


@dataclass
class Config:
    # --- Storage ---
    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR)))
    )
    db_path:    Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    export_dir: Path = field(
        default_factory=lambda: Path(os.getenv("EXPORT_DIR", str(DEFAULT_EXPORT_DIR)))
    )
    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    )

    # --- Receiving ---
    summary_approved_only: bool = field(
        default_factory=lambda: _env_flag("SUMMARY_APPROVED_ONLY", "true")
    )
    # Only items approved for purchase count towards the request summary.

    over_delivery_warning: bool = field(
        default_factory=lambda: _env_flag("OVER_DELIVERY_WARNING", "true")
    )
    # Over-delivery is always recorded; this only controls the warning.

    # --- Reports ---
    report_template: str = field(
        default_factory=lambda: os.getenv("REPORT_TEMPLATE", "receipts_report.xml.j2")
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from receiving_settings.json if present."""
        settings_file = self.config_dir / "receiving_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "summary_approved_only": bool,
            "over_delivery_warning": bool,
            "report_template":       str,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load receiving_settings.json: %s", exc)

    @property
    def report_template_path(self) -> Path:
        return self.config_dir / self.report_template

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.export_dir.mkdir(parents=True, exist_ok=True)
