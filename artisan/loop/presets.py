# artisan/loop/presets.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Named cycle descriptions loaded from YAML."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field

from ..exceptions import ConfigurationError
from ..models.cycle import CraftCycleSpec, CycleShape, FightCycleSpec, GatherCycleSpec


logger = logging.getLogger(__name__)

DEFAULT_PRESETS = Path(__file__).resolve().parent.parent / "presets" / "cycles.yaml"


class PresetTable(BaseModel):
    """All known goals, keyed by shape then name."""
    gather: dict[str, GatherCycleSpec] = Field(default_factory=dict)
    craft: dict[str, CraftCycleSpec] = Field(default_factory=dict)
    fight: dict[str, FightCycleSpec] = Field(default_factory=dict)

    def names(self, shape: Union[CycleShape, str]) -> list[str]:
        return sorted(getattr(self, CycleShape(shape).value))


def load_presets(path: Optional[Path] = None) -> PresetTable:
    """Load and validate the preset table.

    Args:
        path: YAML file. Defaults to the table shipped with artisan.

    Returns:
        Validated PresetTable.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
        pydantic.ValidationError: If a preset is malformed.
    """
    if path is None:
        path = DEFAULT_PRESETS

    if not path.exists():
        raise FileNotFoundError(f"Preset file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    return PresetTable(**data)


def get_preset(
    shape: Union[CycleShape, str],
    name: str,
    overrides: Optional[dict[str, Any]] = None,
    table: Optional[PresetTable] = None,
) -> Union[GatherCycleSpec, CraftCycleSpec, FightCycleSpec]:
    """Look up a preset and apply overrides.

    Args:
        shape: Cycle shape.
        name: Preset name within the shape.
        overrides: Fields to replace. None values are ignored.
        table: Preset table; loaded from the default file when omitted.

    Raises:
        ConfigurationError: If the shape or preset is unknown.
    """
    try:
        shape = CycleShape(shape)
    except ValueError:
        raise ConfigurationError(f"Unknown cycle shape: {shape!r}")

    table = table or load_presets()
    presets = getattr(table, shape.value)
    if name not in presets:
        known = ", ".join(sorted(presets)) or "none"
        raise ConfigurationError(f"Unknown {shape.value} preset {name!r} (known: {known})")

    spec = presets[name]
    changes = {k: v for k, v in (overrides or {}).items() if v is not None}
    if not changes:
        return spec
    logger.info(f"Preset {shape.value}/{name} overrides: {changes}")
    return type(spec).model_validate({**spec.model_dump(), **changes})
