from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
import logging
import os
from typing import Optional

from blackbee import __version__, config
from blackbee.errors import AnalysisFailed, EncodingFailed, UnsupportedType
from blackbee.gemini_analyzer import GeminiAnalyzer
from blackbee.image_loader import load_image
from blackbee.renderer import render_result, render_state
from blackbee.session import AnalysisSession, Analyzer, SessionManager

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")


def create_app(analyzer: Optional[Analyzer] = None,
               sessions: Optional[SessionManager] = None) -> FastAPI:
    """
    Build the web app.

    Args:
        analyzer: Analysis client; when None a GeminiAnalyzer is built on first
            use from GEMINI_API_KEY
        sessions: Session registry (a fresh in-memory one by default)
    """
    app = FastAPI(
        title="Black Bee AI Image Forensics",
        description="Upload an image and let Gemini judge whether it is AI-generated",
        version=__version__,
    )
    app.state.analyzer = analyzer
    app.state.sessions = sessions if sessions is not None else SessionManager()
    templates = Jinja2Templates(directory=TEMPLATES_DIR)

    def get_analyzer() -> Analyzer:
        """Get or initialize the analyzer with the Gemini API key."""
        if app.state.analyzer is None:
            if not config.GEMINI_API_KEY:
                raise HTTPException(
                    status_code=500,
                    detail="GEMINI_API_KEY environment variable not set"
                )
            app.state.analyzer = GeminiAnalyzer(api_key=config.GEMINI_API_KEY)
        return app.state.analyzer

    def get_session(request: Request) -> AnalysisSession:
        return app.state.sessions.get_session(request.cookies.get(config.SESSION_COOKIE))

    def with_cookie(response: Response, session: AnalysisSession) -> Response:
        response.set_cookie(config.SESSION_COOKIE, session.session_id, httponly=True, samesite="lax")
        return response

    def back_to_index(session: AnalysisSession) -> Response:
        return with_cookie(RedirectResponse(url="/", status_code=303), session)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "model": config.GEMINI_MODEL,
            "active_sessions": len(app.state.sessions),
        }

    @app.get("/")
    async def index(request: Request):
        """Render the upload page and, when available, the analysis report."""
        session = get_session(request)
        response = templates.TemplateResponse(request, "index.html", {"state": render_state(session)})
        # Rejection notices show once
        session.dismiss_error()
        return with_cookie(response, session)

    @app.post("/upload")
    async def upload(request: Request, image: UploadFile = File(...)):
        session = get_session(request)
        data = await image.read()
        session.select(data, image.content_type, image.filename or "upload")
        return back_to_index(session)

    @app.post("/analyze")
    async def analyze(request: Request):
        session = get_session(request)
        await session.start_analysis(get_analyzer())
        return back_to_index(session)

    @app.post("/reset")
    async def reset(request: Request):
        session = get_session(request)
        session.reset()
        return back_to_index(session)

    @app.get("/preview/{token}")
    async def preview(token: str):
        item = app.state.sessions.previews.get(token)
        if item is None:
            raise HTTPException(status_code=404, detail="Preview not found")
        data, content_type = item
        return Response(content=data, media_type=content_type)

    @app.get("/api/session")
    async def session_state(request: Request):
        session = get_session(request)
        return with_cookie(JSONResponse(content=render_state(session)), session)

    @app.post("/api/analyze")
    async def analyze_api(image: UploadFile = File(...), include_raw: bool = Form(False)):
        """
        Stateless analysis: upload one image, get the rendered verdict back.

        Returns:
            JSON with the rendered report (and the raw verdict if include_raw)

        Raises:
            415: Non-image upload
            400: Unreadable upload
            502: Gemini failed or returned an invalid verdict
        """
        data = await image.read()
        previews = app.state.sessions.previews
        try:
            payload = load_image(data, image.content_type, image.filename or "upload", previews)
        except UnsupportedType as e:
            raise HTTPException(status_code=415, detail=e.user_message)
        except EncodingFailed as e:
            raise HTTPException(status_code=400, detail=e.user_message)

        try:
            result = await get_analyzer().analyze(payload.encoded_data, payload.content_type)
        except AnalysisFailed as e:
            logger.error(f"API analysis failed for {payload.filename}: {str(e)}")
            raise HTTPException(status_code=502, detail=e.user_message)
        finally:
            previews.release(payload.preview_token)

        content = {"report": render_result(result).to_dict()}
        if include_raw:
            content["raw"] = result.to_dict()
        return JSONResponse(content=content)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
