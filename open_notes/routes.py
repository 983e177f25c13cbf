"""
REST API routes for the Open Notes server.

Organized into logical groups:
- AI: Note categorization and enrichment
- Settings: Server-side settings document
- Health: Liveness checks

Errors are returned as {"error": str, "code": str}.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from .exceptions import ConfigurationError, ErrorCode, OpenNotesError
from .services.container import get_services
from .services.models import CategorizeRequest, EnrichRequest

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

SETTINGS_VERSION = "1.0.0"


def _json_error(message: str, code: ErrorCode, status: int = 400):
    return jsonify({"error": message, "code": code.value}), status


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


# ============================================================================
# AI ENDPOINTS
# ============================================================================


@bp.post("/categorize")
def categorize():
    """
    Categorize a note and extract tags.

    Accepts:
        JSON: {noteId, title, content, createdAt, updatedAt, categories: [{id, name}]}

    Returns:
        JSON: {"category": [category ids], "tags": [kebab-case tags]}
    """
    body = _json_body()
    if body is None:
        return _json_error("Request body must be a JSON object", ErrorCode.INVALID_REQUEST)
    try:
        payload = CategorizeRequest.model_validate(body)
    except ValidationError as e:
        return _json_error(f"Invalid categorize request: {e}", ErrorCode.INVALID_REQUEST)

    svc = get_services()
    try:
        result = svc.categorizer.categorize(svc.settings.get_config(), payload)
    except ConfigurationError as e:
        logger.warning("Categorize rejected for note %s: %s", payload.note_id, e.message)
        return jsonify(e.to_dict()), 400
    except Exception as e:
        logger.exception("Error during AI categorization of note %s", payload.note_id)
        return _json_error(f"Categorization failed: {e}", ErrorCode.AI_CATEGORIZATION_FAILED, 500)

    return jsonify(result.to_json_dict())


@bp.post("/enrich")
def enrich():
    """
    Generate enrichment blocks for a note.

    Accepts:
        JSON: {noteId, title, content, categoryId?, enrichmentPrompt?}

    Returns:
        JSON: {"enrichmentBlocks": [{id, type, content, createdAt}]}
    """
    body = _json_body()
    if body is None:
        return _json_error("Request body must be a JSON object", ErrorCode.INVALID_REQUEST)
    try:
        payload = EnrichRequest.model_validate(body)
    except ValidationError as e:
        return _json_error(f"Invalid enrich request: {e}", ErrorCode.INVALID_REQUEST)

    svc = get_services()
    try:
        result = svc.enricher.enrich(svc.settings.get_config(), payload)
    except ConfigurationError as e:
        logger.warning("Enrich rejected for note %s: %s", payload.note_id, e.message)
        return jsonify(e.to_dict()), 400
    except Exception as e:
        logger.exception("Error during AI enrichment of note %s", payload.note_id)
        return _json_error(f"Enrichment failed: {e}", ErrorCode.AI_ENRICHMENT_FAILED, 500)

    return jsonify(result.model_dump(mode="json", by_alias=True))


# ============================================================================
# SETTINGS ENDPOINTS
# ============================================================================


@bp.get("/settings")
def get_settings():
    """Return the server configuration (models, categories, prompts)."""
    svc = get_services()
    return jsonify(svc.settings.get_config().to_json_dict())


@bp.post("/settings")
def save_settings():
    """
    Merge client settings over the stored document and save.

    Client-only fields (theme, fontSize, editorSettings) are stored too so
    the document stays complete.
    """
    body = _json_body()
    if body is None:
        return _json_error("Request body must be a JSON object", ErrorCode.INVALID_REQUEST)

    logger.info(
        "Received settings from client (languageModel=%s, categories=%d)",
        bool(body.get("languageModel")), len(body.get("categories") or []),
    )
    svc = get_services()
    try:
        svc.settings.merge_and_save(body)
    except ValidationError as e:
        return _json_error(f"Invalid settings: {e}", ErrorCode.INVALID_REQUEST)
    except OpenNotesError as e:
        logger.error("Failed to save settings: %s", e)
        return jsonify({"success": False, "message": f"Failed to save settings: {e.message}", "code": e.code.value}), 500

    return jsonify(
        {
            "success": True,
            "message": "Settings saved successfully",
            "timestamp": _now_iso(),
            "path": svc.settings.get_settings_path(),
        }
    )


@bp.post("/settings/reload")
def reload_settings():
    svc = get_services()
    svc.settings.reload()
    return jsonify({"success": True, "message": "Settings reloaded successfully", "timestamp": _now_iso()})


@bp.get("/settings/info")
def settings_info():
    svc = get_services()
    return jsonify(
        {
            "settingsPath": svc.settings.get_settings_path(),
            "lastLoaded": _now_iso(),
            "version": SETTINGS_VERSION,
        }
    )


# ============================================================================
# HEALTH ENDPOINTS
# ============================================================================


@bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@bp.get("/health/live")
def health_live():
    return jsonify({"status": "alive", "timestamp": _now_iso()})


@bp.get("/health/ready")
def health_ready():
    return jsonify({"status": "ready", "timestamp": _now_iso()})
