"""
NoteWise Application Factory
"""
import os
from datetime import datetime, timezone

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import RequestEntityTooLarge

from config import config

csrf = CSRFProtect()

# Version info
APP_VERSION = os.environ.get("APP_VERSION", "2026.10")
BUILD_TIME = os.environ.get("BUILD_TIME", "")
GIT_COMMIT = os.environ.get("GIT_COMMIT", "")


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    csrf.init_app(app)

    from notewise.session import SessionStore
    app.extensions["notewise_sessions"] = SessionStore(app.config.get("SESSION_IDLE_SECONDS", 7200))

    # Register blueprints
    from notewise.api import api_bp
    app.register_blueprint(api_bp)

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        mb = app.config.get("MAX_UPLOAD_BYTES", 0) // (1024 * 1024)
        return jsonify({
            "ok": False,
            "error": "Upload too large",
            "kind": "invalid",
            "notification": {
                "variant": "destructive",
                "title": "File Too Large",
                "description": f"Please upload a PDF smaller than {mb}MB.",
            },
        }), 413

    @app.errorhandler(CSRFError)
    def csrf_failed(e):
        app.logger.info("CSRF check failed: %s", e.description)
        return jsonify({"ok": False, "error": e.description, "kind": "invalid"}), 400

    # Health check endpoint
    @app.route('/healthz')
    def healthz():
        """Health check for load balancers and monitoring"""
        from notewise.services.openai_service import client_ready, model_name

        openai_ok, openai_msg = client_ready()
        return jsonify({
            "status": "ok" if openai_ok else "degraded",
            "version": app.config.get("APP_VERSION", APP_VERSION),
            "openai_ready": openai_ok,
            "openai_message": openai_msg,
            "model": model_name(),
            "sessions": len(app.extensions["notewise_sessions"]),
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    # Version endpoint
    @app.route('/version')
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config.get("APP_VERSION", APP_VERSION),
            "build_time": app.config.get("BUILD_TIME", BUILD_TIME),
            "git_commit": app.config.get("GIT_COMMIT", GIT_COMMIT),
            "features": {
                "summary": True,
                "quiz": True,
                "flashcards": True,
                "smart_notes": True,
                "chat": True,
                "video_suggestions": app.config.get("FEATURE_VIDEO_SUGGESTIONS", False),
                "text_to_speech": app.config.get("FEATURE_TTS", False),
            }
        })

    app.logger.info("NoteWise %s started (model %s)", app.config.get("APP_VERSION"), app.config.get("OPENAI_MODEL"))
    return app
