"""Detection presets.

A preset bundles which detection kinds are enabled, a preferred redaction
style per kind, a confidence threshold and custom patterns. Presets are YAML
(or JSON) files; builtins ship in ``cleanshare/data/presets`` and can be
selected by id at runtime.
"""

from __future__ import annotations

from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Dict, List, Optional, Union

import orjson
import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .logging import get_logger
from .patterns import patterns_from_regex
from .types import (
    CustomPattern,
    DetectionKind,
    RedactionConfig,
    RedactionStyle,
)

logger = get_logger(__name__)


class Preset(BaseModel):
    """Filter and styling defaults for an analysis/redaction run.

    Attributes
    ----------
    enabled_kinds:
        Kinds kept after analysis. Empty means every kind.
    style_map:
        Preferred style per kind when callers build default actions.
    confidence_threshold:
        Detections below this confidence are dropped.
    custom_regex:
        Legacy bare-regex rules, turned into ``OTHER`` custom patterns.
    """

    id: str
    name: str = ""
    description: str = ""
    enabled_kinds: List[DetectionKind] = Field(default_factory=list)
    style_map: Dict[DetectionKind, RedactionStyle] = Field(default_factory=dict)
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    custom_patterns: List[CustomPattern] = Field(default_factory=list)
    custom_regex: List[str] = Field(default_factory=list)
    default_config: RedactionConfig = Field(default_factory=RedactionConfig)

    def style_for(self, kind: DetectionKind) -> RedactionStyle:
        return self.style_map.get(kind, RedactionStyle.BOX)

    def all_patterns(self) -> List[CustomPattern]:
        return list(self.custom_patterns) + patterns_from_regex(
            self.custom_regex, prefix=f"{self.id}-regex"
        )

    @staticmethod
    def from_file(path: Union[str, Path, Traversable]) -> "Preset":
        """Load a preset from YAML/JSON.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        ValidationError
            If the file does not parse or does not describe a valid preset.
        """
        if isinstance(path, Traversable):
            text = path.read_text(encoding="utf-8")
            name = path.name
        else:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Preset file not found: {path}")
            text = p.read_text(encoding="utf-8")
            name = p.name
        stem = Path(name).stem
        try:
            if Path(name).suffix.lower() in {".yaml", ".yml"}:
                data = yaml.safe_load(text)
            else:
                data = orjson.loads(text)
        except (yaml.YAMLError, orjson.JSONDecodeError) as exc:
            raise ValidationError(f"Preset {name} does not parse: {exc}", rule_id=stem) from exc
        if not isinstance(data, dict):
            raise ValidationError(f"Preset {name} must be a mapping", rule_id=stem)
        data.setdefault("id", stem)
        try:
            return Preset.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Preset {name} is invalid: {exc}", rule_id=stem) from exc


def find_builtin_preset(preset_id: str) -> Optional[Traversable]:
    """Locate a packaged builtin preset by id."""
    ref = resources.files("cleanshare.data").joinpath("presets", f"{preset_id}.yaml")
    return ref if ref.is_file() else None


def list_builtin_presets() -> List[str]:
    folder = resources.files("cleanshare.data").joinpath("presets")
    return sorted(
        Path(entry.name).stem for entry in folder.iterdir() if entry.name.endswith(".yaml")
    )


def load_preset(ref: Optional[str]) -> Optional[Preset]:
    """Resolve a preset id or file path.

    Unknown ids and malformed files are logged and yield ``None`` so the
    caller proceeds without preset filtering.
    """
    if not ref:
        return None
    path = Path(ref)
    source: Optional[Union[Path, Traversable]] = path if path.exists() else find_builtin_preset(ref)
    if source is None:
        logger.warning("Unknown preset", extra={"fields": {"preset": ref}})
        return None
    try:
        return Preset.from_file(source)
    except ValidationError as exc:
        logger.warning("Ignoring malformed preset", extra={"fields": {"preset": ref, "error": str(exc)}})
        return None


__all__ = ["Preset", "find_builtin_preset", "list_builtin_presets", "load_preset"]
