from flask import Flask, g, jsonify

from examples.access_demo.app_config import auth


def create_app() -> Flask:
    """
    Create a Flask application whose routes require KMS access tokens.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    auth.init_app(app)

    @app.get("/api/me")
    @auth.require()
    def me():
        """Return the user the access token was issued to."""
        return jsonify({"uid": g.jwt.get("uid"), "email": g.jwt.get("email")}), 200

    @app.post("/api/profile")
    @auth.require(scopes=["profile-edit"])
    def edit_profile():
        """Only tokens granting `profile-edit` for this service get here."""
        return jsonify({"status": "success", "app": g.jwt.get("app_name")}), 200

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({"status": "denied", "message": error.description}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({"status": "denied", "message": error.description}), 403

    @app.errorhandler(503)
    def unavailable(error):
        return jsonify({"status": "error", "message": error.description}), 503

    return app
