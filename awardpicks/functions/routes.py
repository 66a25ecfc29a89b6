"""Routes for the functions blueprint."""

from flask import current_app, jsonify, request

from awardpicks.auth.decorators import token_required
from awardpicks.core.constants import INVITE_CODE_LENGTH
from awardpicks.errors import ValidationError
from awardpicks.extensions import functions_client, query_service
from awardpicks.sync.service import await_confirmation
from awardpicks.utils import to_jsonable

from . import bp


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object.")
    return data


def _required_str(data, key):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{key}' is required.")
    return value.strip()


def _ok(data=None, message=""):
    return jsonify({"success": True, "message": message, "data": to_jsonable(data)})


def _confirm(stream, predicate):
    """Wait for a write to show up on ``stream``, then give up optimistically."""
    timeout = current_app.config["AWARDPICKS_WRITE_CONFIRM_TIMEOUT"]
    confirmed = await_confirmation(stream, predicate, timeout)
    if not confirmed:
        current_app.logger.info("Write not confirmed by listener; continuing")
    return confirmed


@bp.route("/competitions", methods=["POST"])
@token_required
def create_competition():
    """Create a competition and wait for it to appear in the user's list."""
    data = _json_body()
    name = _required_str(data, "name")
    ceremony_year = _required_str(data, "ceremonyYear")
    event = _required_str(data, "event")

    stream = query_service().my_competitions().start()
    try:
        result = functions_client().create_competition(name, ceremony_year, event)
    except Exception:
        stream.close()
        raise
    confirmed = _confirm(stream, lambda competitions: result.competition_id in competitions)
    return _ok({**to_jsonable(result), "confirmed": confirmed}), 201


@bp.route("/competitions/join", methods=["POST"])
@token_required
def join_competition():
    """Join a competition by invite code."""
    code = _required_str(_json_body(), "code").upper()
    if len(code) != INVITE_CODE_LENGTH or not code.isalnum():
        raise ValidationError(
            f"Invite codes are {INVITE_CODE_LENGTH} letters or digits."
        )
    result = functions_client().join_competition(code)
    return _ok(result, f"Joined {result.competition_name}")


@bp.route("/competitions/<competition_id>/leave", methods=["POST"])
@token_required
def leave_competition(competition_id):
    """Leave a competition."""
    functions_client().leave_competition(competition_id)
    return _ok(message="Left competition")


@bp.route("/competitions/<competition_id>/inactive", methods=["POST"])
@token_required
def set_competition_inactive(competition_id):
    """Mark a competition inactive, or reactivate it."""
    inactive = _json_body().get("inactive")
    if not isinstance(inactive, bool):
        raise ValidationError("'inactive' must be true or false.")
    result = functions_client().set_competition_inactive(competition_id, inactive)
    return _ok(result)


@bp.route("/competitions/<competition_id>/votes", methods=["POST"])
@token_required
def cast_vote(competition_id):
    """Cast a vote and wait for the votes listener to confirm it."""
    data = _json_body()
    category_id = _required_str(data, "categoryId")
    nominee_id = _required_str(data, "nomineeId")

    stream = query_service().my_votes(competition_id).start()
    try:
        result = functions_client().cast_vote(competition_id, category_id, nominee_id)
    except Exception:
        stream.close()
        raise
    confirmed = _confirm(
        stream,
        lambda votes: any(
            v.category_id == category_id and v.nominee_id == nominee_id for v in votes
        ),
    )
    return _ok({**to_jsonable(result), "confirmed": confirmed})


@bp.route("/ceremonies/<ceremony_year>/votes", methods=["POST"])
@token_required
def cast_ceremony_vote(ceremony_year):
    """Cast a vote in every competition of a ceremony."""
    data = _json_body()
    category_id = _required_str(data, "categoryId")
    nominee_id = _required_str(data, "nomineeId")
    event = data.get("event") or None

    stream = query_service().my_ceremony_votes(ceremony_year, event).start()
    try:
        result = functions_client().cast_ceremony_vote(
            ceremony_year, category_id, nominee_id
        )
    except Exception:
        stream.close()
        raise
    confirmed = _confirm(
        stream,
        lambda votes: getattr(votes.get(category_id), "nominee_id", None) == nominee_id,
    )
    return _ok({**to_jsonable(result), "confirmed": confirmed})


@bp.route("/fcm-token", methods=["POST"])
@token_required
def update_fcm_token():
    """Register a push notification token."""
    token = _required_str(_json_body(), "token")
    functions_client().update_fcm_token(token)
    return _ok(message="Token updated")


@bp.route("/account", methods=["DELETE"])
@token_required
def delete_account():
    """Delete the user's account data."""
    functions_client().delete_account()
    return _ok(message="Account deleted")
