"""
Result Renderer

Maps session state and verdicts to plain view structures used by the
HTML template and the JSON API. Formatting only, no analysis logic.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from blackbee.models import AnalysisResult, ImagePayload
from blackbee.session import AnalysisSession

GAUGE_RADIUS = 56
GAUGE_STROKE = 8

PALETTES = {
    # Red for AI (warning), green for real (safe)
    "warning": {"stroke": "#f87171", "text": "text-red-400"},
    "safe": {"stroke": "#4ade80", "text": "text-green-400"},
}


@dataclass
class GaugeView:
    score: float
    label: str
    palette: str
    stroke_color: str
    text_class: str
    radius: int
    normalized_radius: float
    circumference: float
    dash_offset: float


@dataclass
class ResultView:
    is_likely_ai: bool
    verdict_title: str
    reasoning: str
    gauge: GaugeView
    flaws: List[str] = field(default_factory=list)
    remediation_prompt: Optional[str] = None
    show_copy: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FileInfoView:
    filename: str
    format_label: str
    size_label: str
    dimensions: Optional[str] = None


def format_size(n_bytes: int) -> str:
    """2097152 -> "2.00 MB"."""
    return f"{n_bytes / 1024 / 1024:.2f} MB"


def format_label(content_type: str) -> str:
    """"image/jpeg" -> "JPEG"."""
    _, _, subtype = content_type.partition("/")
    return (subtype or content_type).upper()


def render_gauge(score: float, is_likely_ai: bool) -> GaugeView:
    palette = "warning" if is_likely_ai else "safe"
    clamped = max(0.0, min(100.0, float(score)))
    normalized_radius = GAUGE_RADIUS - GAUGE_STROKE / 2
    circumference = normalized_radius * 2 * math.pi
    return GaugeView(
        score=score,
        label=f"{score:.0f}%",
        palette=palette,
        stroke_color=PALETTES[palette]["stroke"],
        text_class=PALETTES[palette]["text"],
        radius=GAUGE_RADIUS,
        normalized_radius=normalized_radius,
        circumference=round(circumference, 3),
        dash_offset=round(circumference - clamped / 100 * circumference, 3),
    )


def render_result(result: AnalysisResult) -> ResultView:
    """
    Build the report for one verdict.

    Flaws and the remediation prompt are shown only for AI verdicts;
    whatever the model sent for a real photo is ignored.
    """
    view = ResultView(
        is_likely_ai=result.is_likely_ai,
        verdict_title=result.verdict_title,
        reasoning=result.reasoning,
        gauge=render_gauge(result.confidence_score, result.is_likely_ai),
    )
    if result.is_likely_ai:
        view.flaws = list(result.flaws)
        view.remediation_prompt = result.remediation_prompt or None
        view.show_copy = bool(view.remediation_prompt)
    return view


def describe_file(payload: ImagePayload) -> FileInfoView:
    dimensions = None
    if payload.width and payload.height:
        dimensions = f"{payload.width} × {payload.height}"
    return FileInfoView(
        filename=payload.filename,
        format_label=format_label(payload.content_type),
        size_label=format_size(payload.size),
        dimensions=dimensions,
    )


def render_state(session: AnalysisSession) -> Dict[str, Any]:
    """Snapshot of a session for the template and /api/session."""
    payload = session.payload
    return {
        "status": session.status.value,
        "is_analyzing": session.is_analyzing,
        "error_message": session.error_message,
        "image": None if payload is None else {
            "preview_url": payload.preview_url,
            **asdict(describe_file(payload)),
        },
        "result": None if session.result is None else render_result(session.result).to_dict(),
    }
