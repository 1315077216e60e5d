"""Black Bee: AI-generated image forensics backed by Gemini."""

__version__ = "1.0.0"
