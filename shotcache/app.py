"""
HTTP surface for the screenshot service.
GET /?url=...&width=&height=&quality=&size=WxH -> image/jpeg
"""

from typing import Optional

from flask import Flask, Response, g, request

from shotcache.config import CONTENT_TYPE, CACHE_CONTROL
from shotcache.logger import setup_logger
from shotcache.models import ImageStream
from shotcache.orchestrator import ScreenshotOrchestrator
from shotcache.params import InvalidInput
from shotcache.rendering.engine import RenderError
from shotcache.throttle import RateLimiter, RATE_LIMIT_MESSAGE

logger = setup_logger("shotcache.http")


def _image_response(stream: ImageStream) -> Response:
    headers = {"Cache-Control": CACHE_CONTROL}
    if stream.content_length is not None:
        headers["Content-Length"] = str(stream.content_length)
    # Werkzeug closes the body (and with it the store stream) once sent
    return Response(stream, status=200, mimetype=CONTENT_TYPE, headers=headers)


def create_app(orchestrator: ScreenshotOrchestrator, limiter: Optional[RateLimiter] = None) -> Flask:
    app = Flask(__name__)

    if limiter is not None:
        @app.before_request
        def throttle():
            admission = limiter.check(request.remote_addr or "unknown")
            if not admission.allowed:
                return Response(RATE_LIMIT_MESSAGE, status=429, mimetype="text/plain",
                                headers=admission.headers())
            g.admission = admission

        @app.after_request
        def rate_limit_headers(response):
            admission = g.get("admission")
            if admission is not None:
                response.headers.update(admission.headers())
            return response

    @app.errorhandler(InvalidInput)
    def invalid_input(e):
        logger.info(f"[HTTP] 400 {e}")
        return Response(str(e), status=400, mimetype="text/plain")

    @app.errorhandler(RenderError)
    def render_failed(e):
        return Response("Internal Server Error", status=500, mimetype="text/plain")

    @app.route("/", methods=["GET"])
    async def screenshot():
        stream = await orchestrator.handle(request.args)
        return _image_response(stream)

    return app
