"""Probe blueprint standing in for a host application's routes."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, get_jwt_identity, jwt_required
from sessionauth.services._shared.errors import FailureCause, Unauthenticated

probe_bp = Blueprint("probe", __name__, url_prefix="/_test")


@probe_bp.get("/whoami")
@jwt_required()
def whoami():
    return jsonify(sub=get_jwt_identity(), email=current_user.email)


@probe_bp.get("/expired")
def raise_expired():
    raise Unauthenticated(cause=FailureCause.TOKEN_EXPIRED)
