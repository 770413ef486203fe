"""Bind redaction actions to the detections they reference."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from cleanshare.errors import ResolutionError
from cleanshare.logging import get_logger
from cleanshare.presets import Preset
from cleanshare.types import (
    Detection,
    RedactionAction,
    RedactionConfig,
    RedactionStyle,
    ResolvedAction,
)

logger = get_logger(__name__)


@dataclass
class Resolution:
    instructions: List[ResolvedAction] = field(default_factory=list)
    errors: List[ResolutionError] = field(default_factory=list)


def resolve(
    actions: Iterable[RedactionAction],
    detections: Iterable[Detection],
    pages: int,
) -> Resolution:
    """Look up each action's detection in the explicitly supplied list.

    Actions naming an unknown detection, or a detection on a page outside
    ``[0, pages)``, are skipped and reported; the rest still resolve.
    """
    by_id = {d.id: d for d in detections}
    out = Resolution()
    for action in actions:
        det = by_id.get(action.detection_id)
        if det is None:
            err = ResolutionError(
                f"Unknown detection id: {action.detection_id}",
                detection_id=action.detection_id,
            )
        elif det.box.page >= pages:
            err = ResolutionError(
                f"Detection {det.id} is on page {det.box.page + 1} of {pages}",
                detection_id=det.id,
            )
        else:
            out.instructions.append(
                ResolvedAction(detection=det, box=det.box, style=action.style, config=action.config)
            )
            continue
        logger.warning(
            "Skipping redaction action",
            extra={"fields": {"detection_id": action.detection_id, "error": str(err)}},
        )
        out.errors.append(err)
    return out


def default_actions(
    detections: Iterable[Detection],
    preset: Optional[Preset] = None,
    style: Optional[RedactionStyle] = None,
) -> List[RedactionAction]:
    """One action per detection.

    ``style`` forces a single style; otherwise the preset's per-kind
    preference applies, falling back to BOX.
    """
    config = preset.default_config if preset else RedactionConfig()
    actions: List[RedactionAction] = []
    for det in detections:
        chosen = style or (preset.style_for(det.kind) if preset else RedactionStyle.BOX)
        actions.append(RedactionAction(detection_id=det.id, style=chosen, config=config))
    return actions


__all__ = ["Resolution", "resolve", "default_actions"]
