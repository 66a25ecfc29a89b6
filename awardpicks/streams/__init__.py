"""The streams blueprint: live snapshots as Server-Sent Events."""

from flask import Blueprint

bp = Blueprint("streams", __name__, url_prefix="/api")

from . import routes  # noqa: E402

__all__ = ["routes"]
