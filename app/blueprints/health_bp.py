"""
Health check blueprint.

Endpoints:
    GET /health   — liveness probe for load balancers
    GET /api      — API banner
"""

from flask import Blueprint, jsonify

from app.models import iso, utcnow

API_VERSION = "1.0.0"

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Always 200 while the process is serving requests."""
    return jsonify({"status": "ok", "timestamp": iso(utcnow())}), 200


@health_bp.route("/api", methods=["GET"])
def api_index():
    return jsonify({"message": "CigroTrack API v1", "version": API_VERSION}), 200
