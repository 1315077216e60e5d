"""
Error taxonomy

Every failure a user can run into carries a ready-to-display message.
None of them is retried automatically.
"""

from typing import Optional


class BlackBeeError(Exception):
    """Base class for user-facing failures."""

    user_message = "操作失败，请重试。"

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        if user_message:
            self.user_message = user_message


class UnsupportedType(BlackBeeError):
    """Selected file is not an image."""

    user_message = "检测到非图片文件，请上传 JPG, PNG 或 WEBP。"


class EncodingFailed(BlackBeeError):
    """Selected image could not be read or encoded."""

    user_message = "图片处理失败，请重试。"


class AnalysisFailed(BlackBeeError):
    """Gemini call failed, timed out, or replied with an invalid verdict."""

    user_message = "图片分析失败，请重试。"
