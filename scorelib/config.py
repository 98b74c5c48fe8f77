from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.json"
DEFAULT_CATALOG_FILE = str(PROJECT_ROOT / "data" / "scores.json")


@dataclass
class AppConfig:
    catalog_file: str = DEFAULT_CATALOG_FILE
    # Per-device genre list left over from older installs; migrated once at start-up.
    legacy_genres_file: str = ""
    log_level: str = "INFO"


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return AppConfig()
    data = json.loads(path.read_text(encoding="utf-8"))
    return AppConfig(
        catalog_file=str(data.get("catalog_file") or DEFAULT_CATALOG_FILE),
        legacy_genres_file=str(data.get("legacy_genres_file", "")),
        log_level=str(data.get("log_level") or "INFO").upper(),
    )


def save_config(cfg: AppConfig, config_path: Optional[Path] = None) -> None:
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(
        json.dumps(
            {
                "catalog_file": cfg.catalog_file,
                "legacy_genres_file": cfg.legacy_genres_file,
                "log_level": cfg.log_level,
            },
            ensure_ascii=False,
            indent=2,
        ),
        encoding="utf-8",
    )
    tmp.replace(path)
