"""Routes for the streams blueprint."""

import json

from flask import Response, current_app, jsonify, request, stream_with_context

from awardpicks.auth.decorators import token_required
from awardpicks.errors import SubscriptionError
from awardpicks.extensions import get_services, query_service
from awardpicks.utils import to_jsonable

from . import bp


def _event(name, payload):
    """Format one Server-Sent Event."""
    return f"event: {name}\ndata: {json.dumps(to_jsonable(payload))}\n\n"


def sse_response(stream):
    """Relay a snapshot stream to the client until either side hangs up.

    The stream is closed when the client disconnects, which cancels every
    listener it opened.
    """
    keepalive = current_app.config["SSE_KEEPALIVE_SECONDS"]
    logger = current_app.logger

    def generate():
        with stream:
            while True:
                try:
                    snapshot = stream.next_snapshot(timeout=keepalive)
                except TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                except StopIteration:
                    return
                except SubscriptionError as e:
                    logger.error(f"Stream {getattr(stream, 'name', '')} failed: {e}")
                    yield _event("error", {"message": e.message})
                    return
                yield _event("snapshot", snapshot)

    response = Response(stream_with_context(generate()), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@bp.route("/streams/ceremonies")
@token_required
def ceremonies():
    """Stream the visible ceremonies."""
    return sse_response(query_service().ceremonies())


@bp.route("/streams/ceremonies/<ceremony_year>/categories")
@token_required
def categories(ceremony_year):
    """Stream the categories of a ceremony, filtered by ``?event=``."""
    event = request.args.get("event") or None
    return sse_response(query_service().categories(ceremony_year, event))


@bp.route("/streams/ceremonies/<ceremony_year>/votes")
@token_required
def ceremony_votes(ceremony_year):
    """Stream the user's merged votes for a ceremony."""
    event = request.args.get("event") or None
    return sse_response(query_service().my_ceremony_votes(ceremony_year, event))


@bp.route("/streams/competitions")
@token_required
def my_competitions():
    """Stream the competitions the user belongs to."""
    return sse_response(query_service().my_competitions())


@bp.route("/streams/competitions/<competition_id>/participants")
@token_required
def participants(competition_id):
    """Stream a competition's leaderboard."""
    return sse_response(query_service().participants(competition_id))


@bp.route("/streams/competitions/<competition_id>/votes")
@token_required
def my_votes(competition_id):
    """Stream the user's votes in one competition."""
    return sse_response(query_service().my_votes(competition_id))


@bp.route("/streams/me")
@token_required
def me():
    """Stream the user's profile."""
    return sse_response(query_service().current_user())


@bp.route("/event-types")
def event_types():
    """Return the cached event types."""
    cache = get_services().event_types
    return jsonify(
        {
            "success": True,
            "message": "",
            "data": {
                "loaded": cache.is_loaded,
                "eventTypes": to_jsonable(cache.event_types),
            },
        }
    )


@bp.route("/ceremonies/current")
@token_required
def current_ceremony():
    """Return the most recent ceremony."""
    ceremony = query_service().current_ceremony()
    return jsonify({"success": True, "message": "", "data": to_jsonable(ceremony)})
