"""
Gemini Forensic Analyzer

Sends one image plus a fixed forensic instruction to Gemini and parses the
structured verdict. Replies are validated strictly: anything that does not
match the schema is reported as a failed analysis, never patched up.
"""

import asyncio
import base64
import binascii
import json
import logging
from typing import Any, List, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blackbee import config
from blackbee.errors import AnalysisFailed
from blackbee.models import AnalysisResult

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """
你是一位专业的数字取证分析师和艺术评论家，专门鉴别AI生成的图像。
请仔细分析提供的图片，寻找AI生成常见的物理不一致性、光影错误、纹理伪影和逻辑谬误（例如手指、文字、背景连贯性、光源方向等）。

请用中文（简体）返回一个JSON对象，包含以下结构：
- isLikelyAI: boolean (如果你认为是AI生成的则为true，如果看起来像真实照片或手绘艺术则为false)。
- confidenceScore: number (0到100，你有多确信？)。
- verdictTitle: string (简短的标题，例如“极有可能是AI生成”或“真实照片”)。
- reasoning: string (一段简洁的分析段落，解释你的整体评估)。
- flaws: array of strings (如果 isLikelyAI 为 true，请列出具体的缺陷点，例如“左侧阴影不一致”、“手指扭曲”、“背景纹理循环”、“文字乱码”等。如果是真实图片，请留空)。
- remediationPrompt: string (如果 isLikelyAI 为 true，请编写一段专门用于发送给AI绘图模型的提示词，目标是**“重绘并修复”**这张图。请保留原图的画面内容，但**针对你上面列出的每一个瑕疵（flaws）加入一条强制性的修正描述**。例如：如果检测到“手指扭曲”，提示词必须包含“解剖学完美的手指，细节清晰的关节”；如果检测到“光影冲突”，提示词必须包含“符合物理规律的自然光照，一致的阴影投射”。请输出一段完整、详细、高质量的提示词，用于生成一张内容相同但没有这些错误的图片。如果是真实图片，请留空)。
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isLikelyAI": {"type": "BOOLEAN"},
        "confidenceScore": {"type": "NUMBER"},
        "verdictTitle": {"type": "STRING"},
        "reasoning": {"type": "STRING"},
        "flaws": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
        },
        "remediationPrompt": {"type": "STRING"},
    },
    "required": ["isLikelyAI", "confidenceScore", "verdictTitle", "reasoning"],
}


class VerdictPayload(BaseModel):
    """Wire shape of a Gemini verdict; strict so "true" or "92" strings are rejected."""

    model_config = ConfigDict(strict=True, extra="ignore")

    isLikelyAI: bool
    confidenceScore: float = Field(ge=0, le=100)
    verdictTitle: str
    reasoning: str
    flaws: Optional[List[str]] = None
    remediationPrompt: Optional[str] = None


class GeminiAnalyzer:
    """Classifies one image as AI-generated or authentic using Gemini."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = config.GEMINI_MODEL,
        timeout_seconds: float = config.ANALYSIS_TIMEOUT_SECONDS,
        client: Any = None,
    ):
        """
        Initialize the analyzer.

        Args:
            api_key: Google Generative AI API key (ignored when client is given)
            model_name: Gemini model identifier
            timeout_seconds: Upper bound for a single call
            client: Pre-built client exposing models.generate_content
        """
        if client is None:
            if not api_key:
                raise ValueError("Gemini API key is required")
            client = genai.Client(api_key=api_key)

        self.client = client
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        logger.info(f"GeminiAnalyzer initialized with model {model_name}")

    async def analyze(self, encoded_data: str, content_type: str) -> AnalysisResult:
        """
        Run one forensic analysis.

        Args:
            encoded_data: Pure base64 image body
            content_type: MIME type of the image

        Returns:
            AnalysisResult parsed from the model's JSON reply

        Raises:
            AnalysisFailed: On SDK/network errors, timeout, or an invalid reply
        """
        loop = asyncio.get_running_loop()
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(None, self._call_gemini_sync, encoded_data, content_type),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Gemini analysis timed out after {self.timeout_seconds}s")
            raise AnalysisFailed(f"Gemini call timed out after {self.timeout_seconds}s")
        except AnalysisFailed:
            raise
        except Exception as e:
            logger.error(f"Gemini Analysis Error: {str(e)}", exc_info=True)
            raise AnalysisFailed(f"Gemini call failed: {str(e)}")

        result = self.parse_response(text)
        logger.info(
            f"Analysis complete: {'AI' if result.is_likely_ai else 'Real'} "
            f"({result.confidence_score:.0f}% confidence)"
        )
        return result

    def _call_gemini_sync(self, encoded_data: str, content_type: str) -> Optional[str]:
        """Synchronous Gemini API call (runs in executor)."""
        try:
            image_bytes = base64.b64decode(encoded_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AnalysisFailed(f"Image payload is not valid base64: {str(e)}")

        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=content_type),
            ANALYSIS_PROMPT,
        ]
        generation_config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
        )

        response = self.client.models.generate_content(
            model=self.model_name,
            contents=contents,
            config=generation_config,
        )
        return response.text

    @staticmethod
    def parse_response(text: Optional[str]) -> AnalysisResult:
        """
        Parse a Gemini reply strictly into an AnalysisResult.

        Raises:
            AnalysisFailed: If the reply is empty, not a JSON object, or violates the schema
        """
        if not text or not text.strip():
            logger.error("Gemini returned an empty response")
            raise AnalysisFailed("AI returned no response")

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Gemini reply is not JSON: {str(e)}")
            raise AnalysisFailed(f"Reply is not valid JSON: {str(e)}")

        if not isinstance(data, dict):
            logger.error(f"Gemini reply is a JSON {type(data).__name__}, expected object")
            raise AnalysisFailed("Reply is not a JSON object")

        try:
            verdict = VerdictPayload.model_validate(data)
        except ValidationError as e:
            logger.error(f"Gemini reply violates the verdict schema: {e.error_count()} error(s)")
            raise AnalysisFailed(f"Reply violates schema: {str(e)}")

        flaws = tuple(verdict.flaws or ())
        remediation = verdict.remediationPrompt or None
        if verdict.isLikelyAI and flaws and not (remediation and remediation.strip()):
            logger.error(f"Gemini listed {len(flaws)} flaw(s) without a remediation prompt")
            raise AnalysisFailed("Flaws reported without a remediation prompt")

        return AnalysisResult(
            is_likely_ai=verdict.isLikelyAI,
            confidence_score=verdict.confidenceScore,
            verdict_title=verdict.verdictTitle,
            reasoning=verdict.reasoning,
            flaws=flaws,
            remediation_prompt=remediation,
        )
