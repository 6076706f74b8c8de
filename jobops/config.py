"""Load profile, settings and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobops.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = Path(os.environ.get("JOBOPS_CONFIG_DIR", ROOT_DIR / "config"))
DATA_DIR: Path = Path(os.environ.get("JOBOPS_DATA_DIR", ROOT_DIR / "data"))
PDF_DIR: Path = DATA_DIR / "pdfs"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"

RXRESUME_MODES: tuple[str, ...] = ("v4", "v5")
DEFAULT_RXRESUME_URLS: dict[str, str] = {
    "v4": "https://v4.rxresu.me",
    "v5": "https://rxresu.me",
}


@dataclass
class PipelineConfig:
    top_n: int = 10
    min_suitability_score: float = 50
    sources: list[str] = field(default_factory=list)
    output_dir: Path = PDF_DIR
    max_jobs_to_score: int = 50


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_profile(path: Path | None = None) -> dict[str, Any]:
    """Candidate profile used by the scorer and the summary generator."""
    data = _read_yaml(path or PROFILE_PATH)

    # Backward compat: migrate flat preferred_roles → core_roles + stretch_roles
    if "preferred_roles" in data and "core_roles" not in data:
        data["core_roles"] = data.pop("preferred_roles")
        data.setdefault("stretch_roles", [])

    if "preferred_roles" not in data:
        data["preferred_roles"] = (
            list(data.get("core_roles", []))
            + list(data.get("stretch_roles", []))
        )

    return data


def load_settings(path: Path | None = None) -> dict[str, Any]:
    return _read_yaml(path or SETTINGS_PATH)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def get_setting(env_key: str, settings_key: str, settings: dict[str, Any] | None = None) -> str:
    """Env var first, then the ``rxresume`` block of settings.yaml."""
    value = get_env(env_key)
    if value:
        return value
    block = (settings if settings is not None else load_settings()).get("rxresume") or {}
    raw = block.get(settings_key)
    return str(raw).strip() if raw is not None else ""


def ensure_dirs() -> None:
    for d in (DATA_DIR, PDF_DIR):
        d.mkdir(parents=True, exist_ok=True)


def load_pipeline_config(
    overrides: dict[str, Any] | None = None,
    settings: dict[str, Any] | None = None,
) -> PipelineConfig:
    """Defaults, then ``pipeline:`` from settings.yaml, then explicit overrides."""
    merged: dict[str, Any] = {}
    block = (settings if settings is not None else load_settings()).get("pipeline") or {}
    known = {f.name for f in fields(PipelineConfig)}
    for source in (block, overrides or {}):
        for key, value in source.items():
            if key in known and value is not None:
                merged[key] = value
            elif key not in known:
                log.warning("Ignoring unknown pipeline setting %r", key)
    if "output_dir" in merged:
        merged["output_dir"] = Path(merged["output_dir"])
    return PipelineConfig(**merged)


def resolve_rxresume_mode(settings: dict[str, Any] | None = None) -> str:
    raw = get_setting("RXRESUME_MODE", "mode", settings)
    return "v4" if raw.lower() == "v4" else "v5"


def resolve_base_resume_id(mode: str, settings: dict[str, Any] | None = None) -> str | None:
    """Mode-specific base resume id wins over the legacy shared one."""
    settings = settings if settings is not None else load_settings()
    specific = get_setting(
        f"RXRESUME_BASE_RESUME_ID_{mode.upper()}", f"base_resume_id_{mode}", settings
    )
    legacy = get_setting("RXRESUME_BASE_RESUME_ID", "base_resume_id", settings)
    return specific or legacy or None


def resume_projects_settings(settings: dict[str, Any] | None = None) -> dict[str, Any] | None:
    """Raw ``resume_projects`` block from settings.yaml, or None when unset."""
    block = (settings if settings is not None else load_settings()).get("resume_projects")
    return block if isinstance(block, dict) else None
