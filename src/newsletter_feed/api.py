"""HTTP trigger and feed endpoints."""

import asyncio
import hmac
import logging
from typing import Optional, Tuple, Union

from flask import Flask, Response, jsonify, request

from newsletter_feed.bootstrap import Services, build_services
from newsletter_feed.config import Settings
from newsletter_feed.core import ContractViolation, InteractionType, PipelineError, RankedSegment

logger = logging.getLogger(__name__)

JsonResponse = Union[Response, Tuple[Response, int]]


def _is_authorized(secret: str) -> bool:
    if not secret:
        return False
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header, f"Bearer {secret}")


def _pipeline_error(e: PipelineError) -> Tuple[Response, int]:
    body = {"success": False, "error": str(e)}
    if isinstance(e, ContractViolation):
        body["raw_response"] = e.raw_preview
    return jsonify(body), 500


def _ranked_to_json(item: RankedSegment) -> dict:
    segment = item.segment
    return {
        "id": segment.id,
        "title": segment.title,
        "summary": segment.summary,
        "content": segment.content,
        "topics": list(segment.topics),
        "importance_score": segment.importance_score,
        "source_urls": list(segment.source_urls),
        "source_names": list(segment.source_names),
        "created_at": segment.created_at.isoformat(),
        "score": item.score,
        "combined_score": item.combined_score,
        "personalized": item.personalized,
    }


def create_app(settings: Settings, services: Optional[Services] = None) -> Flask:
    """Create the Flask app around an existing or freshly built service graph."""
    services = services if services is not None else build_services(settings)
    app = Flask(__name__)

    @app.route("/")
    def health_check() -> Response:
        return jsonify({"status": "healthy", "message": "Newsletter feed is running"})

    @app.route("/api/cron/fetch", methods=["POST"])
    def cron_fetch() -> JsonResponse:
        if not _is_authorized(settings.cron_secret):
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        logger.info("📡  Fetch triggered")
        try:
            result = asyncio.run(services.pipeline.fetch())
        except PipelineError as e:
            logger.error(f"❌  Fetch failed: {e}")
            return _pipeline_error(e)

        return jsonify({"success": True, "fetched": result.fetched, "inserted": result.inserted})

    @app.route("/api/cron/process", methods=["POST"])
    def cron_process() -> JsonResponse:
        if not _is_authorized(settings.cron_secret):
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        logger.info("🧩  Processing triggered")
        try:
            result = asyncio.run(services.pipeline.process())
        except PipelineError as e:
            logger.error(f"❌  Processing failed: {e}")
            return _pipeline_error(e)

        return jsonify({"success": True, "processed": result.processed, "segments": result.segments})

    @app.route("/api/feed/<user_id>", methods=["GET"])
    def get_feed(user_id: str) -> JsonResponse:
        refresh = request.args.get("refresh", "").lower() in ("1", "true", "yes")
        try:
            ranked = services.feed.get_feed(user_id, refresh=refresh)
        except PipelineError as e:
            return _pipeline_error(e)

        return jsonify({"success": True, "segments": [_ranked_to_json(item) for item in ranked]})

    @app.route("/api/interactions", methods=["POST"])
    def record_interaction() -> JsonResponse:
        payload = request.get_json(silent=True) or {}
        user_id = payload.get("user_id")
        segment_id = payload.get("segment_id")
        duration = payload.get("duration_seconds")

        if not user_id or not segment_id:
            return jsonify({"success": False, "error": "user_id and segment_id are required"}), 400

        try:
            interaction_type = InteractionType(payload.get("interaction_type"))
        except ValueError:
            allowed = ", ".join(t.value for t in InteractionType)
            return jsonify({"success": False, "error": f"interaction_type must be one of: {allowed}"}), 400

        if duration is not None and (not isinstance(duration, int) or duration < 0):
            return jsonify({"success": False, "error": "duration_seconds must be a non-negative integer"}), 400

        try:
            services.feed.record_interaction(user_id, segment_id, interaction_type, duration)
        except PipelineError as e:
            return _pipeline_error(e)

        return jsonify({"success": True}), 201

    @app.errorhandler(404)
    def not_found(_: Exception) -> Tuple[Response, int]:
        return jsonify({"error": "Not found"}), 404

    return app
