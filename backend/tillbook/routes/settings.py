# Overview: Flask API routes for shop settings; parses input and returns JSON responses.

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..models import CURRENCIES, LANGUAGES
from ..services import settings_service
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings():
    settings = settings_service.get_settings()
    return jsonify({
        "settings": settings.to_dict(),
        "currencies": {code: {"symbol": sym, "decimals": dec} for code, (sym, dec) in CURRENCIES.items()},
        "languages": list(LANGUAGES),
    })


@settings_bp.patch("")
def update_settings():
    try:
        settings = settings_service.update_settings(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"settings": settings.to_dict()})
