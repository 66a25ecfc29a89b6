"""Client for the game's callable Cloud Functions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from awardpicks.core.constants import DEFAULT_FUNCTIONS_REGION, DEFAULT_FUNCTIONS_TIMEOUT
from awardpicks.errors import (
    FunctionUnavailableError,
    InvalidResponseError,
    OperationFailedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateCompetitionResponse:
    """Result of ``createCompetition``."""

    success: bool
    competition_id: str
    invite_code: str


@dataclass(frozen=True)
class JoinCompetitionResponse:
    """Result of ``joinCompetition``."""

    success: bool
    competition_id: str
    competition_name: str


@dataclass(frozen=True)
class SetCompetitionInactiveResponse:
    """Result of ``setCompetitionInactive``."""

    success: bool
    status: str


@dataclass(frozen=True)
class CastVoteResponse:
    """Result of ``castVote``."""

    success: bool
    is_update: bool
    category_name: str
    nominee_name: str


@dataclass(frozen=True)
class CastCeremonyVoteResponse:
    """Result of ``castCeremonyVote``."""

    success: bool
    category_name: str
    nominee_name: str
    competitions_updated: int


def _text(result: dict[str, Any], key: str) -> str:
    """Read an optional string field; null or missing becomes ''."""
    value = result.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        logger.error("Field %s has unexpected type %s", key, type(value).__name__)
        raise InvalidResponseError()
    return value


def _count(result: dict[str, Any], key: str) -> int:
    """Read an optional integer field; null or missing becomes 0."""
    value = result.get(key)
    if value is None:
        return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        logger.error("Field %s is not an integer: %r", key, value)
        raise InvalidResponseError()
    return value


def _message(body: dict[str, Any], default: str) -> str:
    message = body.get("message")
    return message if isinstance(message, str) and message else default


def functions_base_url(project_id: str, region: str = DEFAULT_FUNCTIONS_REGION) -> str:
    """Return the HTTPS endpoint prefix of a project's callable functions."""
    return f"https://{region}-{project_id}.cloudfunctions.net"


class CloudFunctionsClient:
    """Calls the backend's callable functions over HTTPS.

    Each call is sent once; retrying is up to the caller, and the server may
    see a call more than once.
    """

    def __init__(
        self,
        base_url: str,
        id_token: Optional[Callable[[], Optional[str]]] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_FUNCTIONS_TIMEOUT,
    ) -> None:
        """Initialize the client.

        ``id_token`` returns the Firebase ID token sent as the bearer token.
        """
        self.base_url = base_url.rstrip("/")
        self._id_token = id_token
        self._http = http if http is not None else httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def call(self, name: str, data: Optional[dict[str, Any]] = None) -> Any:
        """Invoke the callable function ``name`` and return its result.

        Raises:
            FunctionUnavailableError: If the request does not get a reply.
            InvalidResponseError: If the reply is not a callable response.
            OperationFailedError: If the function reports an error.
        """
        headers = {"Content-Type": "application/json"}
        token = self._id_token() if self._id_token else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._http.post(
                f"{self.base_url}/{name}", json={"data": data}, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error("Function %s could not be reached: %s", name, e)
            raise FunctionUnavailableError() from e
        try:
            body = response.json()
        except ValueError as e:
            logger.error("Function %s returned a non-JSON reply", name)
            raise InvalidResponseError() from e

        if not isinstance(body, dict):
            raise InvalidResponseError()
        if "error" in body:
            error = body["error"] if isinstance(body["error"], dict) else {}
            message = _message(error, f"Call to {name} failed")
            logger.warning("Function %s failed: %s", name, message)
            raise OperationFailedError(message)
        if "result" not in body:
            raise InvalidResponseError()
        return body["result"]

    def _call_checked(
        self, name: str, data: Optional[dict[str, Any]], failure: str
    ) -> dict[str, Any]:
        result = self.call(name, data)
        if not isinstance(result, dict):
            raise InvalidResponseError()
        if result.get("success") is False:
            raise OperationFailedError(_message(result, failure))
        return result

    def create_competition(
        self, name: str, ceremony_year: str, event: str
    ) -> CreateCompetitionResponse:
        """Create a competition for a ceremony."""
        result = self._call_checked(
            "createCompetition",
            {"name": name, "ceremonyYear": ceremony_year, "event": event},
            "Failed to create competition",
        )
        return CreateCompetitionResponse(
            success=bool(result.get("success", False)),
            competition_id=_text(result, "competitionId"),
            invite_code=_text(result, "inviteCode"),
        )

    def join_competition(self, code: str) -> JoinCompetitionResponse:
        """Join a competition by invite code (case-insensitive)."""
        result = self._call_checked(
            "joinCompetition",
            {"code": code.strip().upper()},
            "Failed to join competition",
        )
        return JoinCompetitionResponse(
            success=bool(result.get("success", False)),
            competition_id=_text(result, "competitionId"),
            competition_name=_text(result, "competitionName"),
        )

    def leave_competition(self, competition_id: str) -> None:
        """Leave a competition."""
        result = self.call("leaveCompetition", {"competitionId": competition_id})
        if not isinstance(result, dict) or result.get("success") is not True:
            raise OperationFailedError("Failed to leave competition")

    def set_competition_inactive(
        self, competition_id: str, inactive: bool
    ) -> SetCompetitionInactiveResponse:
        """Mark an owned competition inactive, or reactivate it."""
        result = self._call_checked(
            "setCompetitionInactive",
            {"competitionId": competition_id, "inactive": inactive},
            "Failed to update competition",
        )
        return SetCompetitionInactiveResponse(
            success=bool(result.get("success", False)),
            status=_text(result, "status"),
        )

    def cast_vote(
        self, competition_id: str, category_id: str, nominee_id: str
    ) -> CastVoteResponse:
        """Cast or change a vote within one competition."""
        result = self._call_checked(
            "castVote",
            {
                "competitionId": competition_id,
                "categoryId": category_id,
                "nomineeId": nominee_id,
            },
            "Failed to cast vote",
        )
        return CastVoteResponse(
            success=bool(result.get("success", False)),
            is_update=bool(result.get("isUpdate", False)),
            category_name=_text(result, "categoryName"),
            nominee_name=_text(result, "nomineeName"),
        )

    def cast_ceremony_vote(
        self, ceremony_year: str, category_id: str, nominee_id: str
    ) -> CastCeremonyVoteResponse:
        """Cast a vote in every open competition of a ceremony."""
        result = self._call_checked(
            "castCeremonyVote",
            {
                "ceremonyYear": ceremony_year,
                "categoryId": category_id,
                "nomineeId": nominee_id,
            },
            "Failed to cast vote",
        )
        return CastCeremonyVoteResponse(
            success=bool(result.get("success", False)),
            category_name=_text(result, "categoryName"),
            nominee_name=_text(result, "nomineeName"),
            competitions_updated=_count(result, "competitionsUpdated"),
        )

    def update_fcm_token(self, token: str) -> None:
        """Register a push notification token for the user."""
        self.call("updateFcmToken", {"token": token})

    def delete_account(self) -> None:
        """Delete the user's account data."""
        result = self.call("deleteAccount")
        if not isinstance(result, dict) or result.get("success") is not True:
            raise OperationFailedError("Failed to delete account data")
