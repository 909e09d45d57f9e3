from flask import current_app, jsonify

from ..validation import ConflictError, NotFoundError, PermissionDeniedError, ValidationError


def json_error(exc: Exception):
    """Map service exceptions to {"error": ...} responses; anything else is a logged 500."""
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, PermissionDeniedError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Unhandled error")
    return jsonify({"error": "Internal server error"}), 500
