"""Serverless-style request handlers.

Each handler takes a JSON payload (a dict) and returns a FunctionResponse.
On any failure the response has status 400 and body ``{"error": message}``.
The two scheduled handlers also write a ``system_logs`` row; that audit write
is best effort and never masks the original result.
"""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .errors import AppError, StorageError
from .gamification import select_daily_challenges
from .mfa import TOTPService

if TYPE_CHECKING:
    from .config import RewardsConfig
    from .db import ChallengeStore, ProfileStore, SystemLogStore

logger = logging.getLogger(__name__)

JSON_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Content-Type": "application/json",
}


@dataclass
class FunctionResponse:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> str:
        return json.dumps(self.body, default=str)


def _error(message: str) -> FunctionResponse:
    return FunctionResponse(status=400, body={"error": message})


@dataclass
class FunctionContext:
    """Stores and services the handlers operate on."""

    profiles: ProfileStore
    challenges: ChallengeStore
    system_logs: SystemLogStore
    totp: TOTPService = field(default_factory=TOTPService)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], datetime] = datetime.now

    @classmethod
    def from_config(cls, config: RewardsConfig) -> FunctionContext:
        from .db import ChallengeStore, ProfileStore, SystemLogStore

        db_path = config.database.path
        return cls(
            profiles=ProfileStore(db_path),
            challenges=ChallengeStore(db_path),
            system_logs=SystemLogStore(db_path),
            totp=TOTPService(
                issuer=config.totp.issuer,
                digits=config.totp.digits,
                interval=config.totp.interval,
                valid_window=config.totp.valid_window,
            ),
        )

    def close(self) -> None:
        self.profiles.close()
        self.challenges.close()
        self.system_logs.close()


def _audit(ctx: FunctionContext, operation: str, status: str, details: str) -> None:
    try:
        ctx.system_logs.write(operation, status, details)
    except StorageError as e:
        logger.error("Could not write system log for %s: %s", operation, e)


def _failure(operation: str, exc: Exception) -> str:
    if isinstance(exc, (AppError, ValueError)):
        logger.warning("%s failed: %s", operation, exc)
    else:
        logger.exception("%s failed", operation)
    return str(exc)


def generate_totp(payload: dict[str, Any], ctx: FunctionContext) -> FunctionResponse:
    """Create and store a TOTP secret for ``userId``.

    Returns ``{"secret", "qrCodeUrl"}``.
    """
    try:
        user_id = payload.get("userId")
        if not user_id:
            raise ValueError("User ID is required")

        profile = ctx.profiles.get_profile(user_id)
        if profile is not None and profile.mfa_enabled and profile.totp_secret:
            raise ValueError("MFA is already enabled for this user")

        label = payload.get("email") or (profile.email if profile else None) or "user"
        setup = ctx.totp.generate_secret(label)
        ctx.profiles.set_totp_secret(user_id, setup.secret)
    except Exception as e:
        return _error(_failure("generate_totp", e))

    return FunctionResponse(
        status=200,
        body={"secret": setup.secret, "qrCodeUrl": setup.qr_code_url},
    )


def verify_totp(payload: dict[str, Any], ctx: FunctionContext) -> FunctionResponse:
    """Check a code for ``userId``.

    With ``secret`` in the payload this is a setup confirmation: a valid
    code enables MFA. Otherwise the stored secret is used.
    Returns ``{"valid": bool}``.
    """
    try:
        user_id = payload.get("userId")
        code = payload.get("code")
        if not user_id or not code:
            raise ValueError("User ID and verification code are required")

        setup_secret = payload.get("secret")
        if setup_secret:
            secret = setup_secret
        else:
            profile = ctx.profiles.get_profile(user_id)
            if profile is None or not profile.totp_secret:
                raise ValueError("TOTP secret not found for this user")
            secret = profile.totp_secret

        valid = ctx.totp.verify(secret, str(code))
        if valid and setup_secret:
            ctx.profiles.enable_mfa(user_id, setup_secret)
            logger.info("MFA enabled for user %s", user_id)
    except Exception as e:
        return _error(_failure("verify_totp", e))

    return FunctionResponse(status=200, body={"valid": valid})


def generate_daily_challenges(
    payload: dict[str, Any] | None, ctx: FunctionContext
) -> FunctionResponse:
    """Retire expired challenges and publish 3 to 5 new ones for today."""
    operation = "generate_daily_challenges"
    try:
        now = ctx.clock()
        retired = ctx.challenges.deactivate_expired(now)
        challenges = select_daily_challenges(now.date(), rng=ctx.rng)
        ctx.challenges.add_challenges(challenges)
    except Exception as e:
        message = _failure(operation, e)
        _audit(ctx, operation, "error", message)
        return _error(message)

    message = f"Generated {len(challenges)} daily challenges"
    logger.info("%s (%d expired challenges deactivated)", message, retired)
    _audit(ctx, operation, "success", message)
    return FunctionResponse(
        status=200,
        body={
            "success": True,
            "message": message,
            "challenges": [
                {
                    "title": c.title,
                    "description": c.description,
                    "points_reward": c.points_reward,
                    "start_date": c.start_date.isoformat(),
                    "end_date": c.end_date.isoformat(),
                }
                for c in challenges
            ],
        },
    )


def monthly_points_reset(
    payload: dict[str, Any] | None, ctx: FunctionContext
) -> FunctionResponse:
    """Zero every user's monthly points balance."""
    operation = "monthly_points_reset"
    try:
        count = ctx.profiles.reset_monthly_points()
    except Exception as e:
        message = _failure(operation, e)
        _audit(ctx, operation, "error", message)
        return _error(message)

    message = "Monthly points reset completed successfully"
    logger.info("%s (%d profiles)", message, count)
    _audit(ctx, operation, "success", message)
    return FunctionResponse(status=200, body={"success": True, "message": message})


HANDLERS: dict[str, Callable[[dict[str, Any], FunctionContext], FunctionResponse]] = {
    "generate-totp": generate_totp,
    "verify-totp": verify_totp,
    "generate-daily-challenges": generate_daily_challenges,
    "monthly-points-reset": monthly_points_reset,
}


def invoke(name: str, payload: dict[str, Any] | None, ctx: FunctionContext) -> FunctionResponse:
    """Dispatch to a handler by its function name."""
    handler = HANDLERS.get(name)
    if handler is None:
        return _error(f"Unknown function: {name}")
    return handler(payload or {}, ctx)
