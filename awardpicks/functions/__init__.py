"""The functions blueprint: writes through the callable Cloud Functions."""

from flask import Blueprint

bp = Blueprint("functions", __name__, url_prefix="/api")

from . import routes  # noqa: E402

__all__ = ["routes"]
