import asyncio
import io
import json
import time
from types import SimpleNamespace

import pytest
from PIL import Image

from blackbee.errors import AnalysisFailed
from blackbee.image_loader import PreviewStore
from blackbee.models import AnalysisResult


REAL_VERDICT = {
    "isLikelyAI": False,
    "confidenceScore": 92,
    "verdictTitle": "真实照片",
    "reasoning": "光影与透视自然，噪点分布符合相机传感器特征。",
}

AI_VERDICT = {
    "isLikelyAI": True,
    "confidenceScore": 88,
    "verdictTitle": "极有可能是AI生成",
    "reasoning": "手部结构异常，背景纹理重复。",
    "flaws": ["手指扭曲", "背景纹理循环"],
    "remediationPrompt": "保持原图场景，解剖学完美的手指，细节清晰的关节，自然不重复的背景纹理。",
}


def make_jpeg(size=(8, 6), pad_to=None) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 120, 40)).save(buf, "JPEG")
    data = buf.getvalue()
    if pad_to:
        data += b"\x00" * (pad_to - len(data))
    return data


class FakeModels:
    """Stands in for genai.Client().models."""

    def __init__(self, text=None, exc=None, delay=0.0):
        self.text = text
        self.exc = exc
        self.delay = delay
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.delay:
            time.sleep(self.delay)
        if self.exc:
            raise self.exc
        return SimpleNamespace(text=self.text)


class FakeClient:
    def __init__(self, text=None, exc=None, delay=0.0):
        self.models = FakeModels(text=text, exc=exc, delay=delay)


def fake_client(payload=None, text=None, **kwargs) -> FakeClient:
    if payload is not None:
        text = json.dumps(payload, ensure_ascii=False)
    return FakeClient(text=text, **kwargs)


class BlockingAnalyzer:
    """Analyzer that waits on an event so tests can observe ANALYZING."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()

    async def analyze(self, encoded_data, content_type):
        self.calls += 1
        await self.release.wait()
        if self.error:
            raise self.error
        return self.result


class StaticAnalyzer:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def analyze(self, encoded_data, content_type):
        self.calls.append((encoded_data, content_type))
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def previews():
    return PreviewStore()


@pytest.fixture
def real_result():
    return AnalysisResult(
        is_likely_ai=False,
        confidence_score=92.0,
        verdict_title="真实照片",
        reasoning="光影自然。",
    )


@pytest.fixture
def ai_result():
    return AnalysisResult(
        is_likely_ai=True,
        confidence_score=88.0,
        verdict_title="极有可能是AI生成",
        reasoning="手部结构异常。",
        flaws=("手指扭曲", "背景纹理循环"),
        remediation_prompt="解剖学完美的手指，细节清晰的关节。",
    )


@pytest.fixture
def analysis_error():
    return AnalysisFailed("Reply is not valid JSON")
