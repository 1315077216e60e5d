"""
Data Models for Image Analysis

Structured data classes shared by the loader, the Gemini analyzer,
the session state machine and the renderer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, Tuple


class AnalysisStatus(str, Enum):
    """Lifecycle of one analysis session."""
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass
class ImagePayload:
    """
    An uploaded image, ready to be sent to Gemini.

    Attributes:
        raw_bytes: Original file content
        filename: Name reported by the browser
        content_type: Declared MIME type (always starts with "image/")
        encoded_data: Pure base64 of raw_bytes (no "data:...;base64," prefix)
        preview_token: Handle registered in the PreviewStore
        preview_url: URL the page uses to display the image
        width: Pixel width read from the image header, if readable
        height: Pixel height read from the image header, if readable
    """
    raw_bytes: bytes
    filename: str
    content_type: str
    encoded_data: str
    preview_token: str
    preview_url: str
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.raw_bytes)


@dataclass(frozen=True)
class AnalysisResult:
    """
    Verdict returned by one successful Gemini analysis.

    Attributes:
        is_likely_ai: Whether the model considers the image AI-generated
        confidence_score: Model confidence, 0-100
        verdict_title: Short headline, e.g. "极有可能是AI生成"
        reasoning: One paragraph explaining the assessment
        flaws: Concrete defects (only meaningful when is_likely_ai)
        remediation_prompt: Repaint prompt fixing every flaw (only when is_likely_ai)
    """
    is_likely_ai: bool
    confidence_score: float
    verdict_title: str
    reasoning: str
    flaws: Tuple[str, ...] = field(default_factory=tuple)
    remediation_prompt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert AnalysisResult to the camelCase wire format."""
        return {
            "isLikelyAI": self.is_likely_ai,
            "confidenceScore": self.confidence_score,
            "verdictTitle": self.verdict_title,
            "reasoning": self.reasoning,
            "flaws": list(self.flaws),
            "remediationPrompt": self.remediation_prompt,
        }
