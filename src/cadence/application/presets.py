"""Named study-settings presets stored as a YAML mapping of name -> fields."""

import logging
from pathlib import Path

import yaml

from cadence.domain.exceptions import PresetNotFoundError
from cadence.domain.models import StudySettings

logger = logging.getLogger(__name__)


def load_presets(path: Path) -> dict[str, StudySettings]:
    """Load every preset in ``path``; a missing or empty file yields no presets."""
    if not path.exists():
        return {}

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring presets file {path}: expected a mapping")
        return {}

    presets: dict[str, StudySettings] = {}
    for name, fields in raw.items():
        if not isinstance(fields, dict):
            logger.warning(f"Ignoring preset '{name}': expected a mapping of settings")
            continue
        presets[str(name)] = StudySettings.model_validate(fields)
    return presets


def get_preset(path: Path, name: str) -> StudySettings:
    presets = load_presets(path)
    if name not in presets:
        raise PresetNotFoundError(name)
    return presets[name]


def _write(path: Path, presets: dict[str, StudySettings]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {name: settings.model_dump() for name, settings in presets.items()}
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


def save_preset(path: Path, name: str, settings: StudySettings) -> None:
    """Create or replace a preset."""
    presets = load_presets(path)
    presets[name] = settings
    _write(path, presets)
    logger.info(f"Saved preset '{name}' to {path}")


def delete_preset(path: Path, name: str) -> None:
    presets = load_presets(path)
    if name not in presets:
        raise PresetNotFoundError(name)
    del presets[name]
    _write(path, presets)
