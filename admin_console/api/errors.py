"""Error handlers for the application."""
import traceback

from flask import render_template, jsonify, request, redirect, url_for
from werkzeug.exceptions import HTTPException


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors (CSRF, proxy checks, malformed input)."""
        description = getattr(error, "description", None) or "Bad Request"
        if _wants_json():
            return jsonify({"error": description}), 400
        return render_template(
            "errors/403.html",
            title="Bad Request",
            message=description,
        ), 400

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        if _wants_json():
            return jsonify({"error": "Authentication required"}), 401
        return redirect(url_for("auth.login"))

    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 Forbidden errors."""
        if _wants_json():
            return jsonify({"error": "Insufficient permissions"}), 403
        return render_template(
            "errors/403.html",
            title="Forbidden",
            message="Administrator role required",
        ), 403

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        if _wants_json():
            return jsonify({"error": "Resource not found"}), 404
        return render_template(
            "errors/403.html",  # Reuse 403 template
            title="Not Found",
            message="Page not found",
        ), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error("Internal error: %s", error, exc_info=True)
        return _server_error()

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error("Unhandled exception: %s", error, exc_info=True)
        return _server_error()

    def _server_error():
        if _wants_json():
            return jsonify({"error": "An unexpected error occurred"}), 500

        # SECURITY: Show traceback ONLY in debug/demo mode, never in production
        cfg = app.config.get("APP_CONFIG")
        show_details = app.debug or bool(cfg and cfg.demo_mode)

        return render_template(
            "errors/500.html",
            title="Internal Server Error",
            error_message=traceback.format_exc() if show_details else None,
            show_debug=show_details,
        ), 500


def _wants_json():
    """Check if the client wants a JSON response."""
    # JSON API always answers in JSON
    if request.path.startswith("/api/"):
        return True

    return request.accept_mimetypes.accept_json and \
           not request.accept_mimetypes.accept_html
