from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

import redis

from auth_service.application.ports.token_blacklist_port import TokenBlacklistPort
from auth_service.domain.exceptions import DatabaseError
from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)

KEY_PREFIX = "blacklist:token:"


def create_redis_client(url: str, *, timeout_seconds: float = 5.0) -> redis.Redis:
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=timeout_seconds,
        socket_timeout=timeout_seconds,
        socket_keepalive=True,
        health_check_interval=30,
    )


class RedisTokenBlacklist(TokenBlacklistPort):
    """Revoked access-token fingerprints shared by every service instance.

    Keys expire together with the token they block, so the set never outgrows
    the number of live logged-out tokens.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    def revoke(self, *, fingerprint: str, expires_at: datetime, deadline: Deadline | None = None) -> None:
        ensure_deadline(deadline).check("blacklist_revoke")
        ttl = math.ceil((expires_at - datetime.now(timezone.utc)).total_seconds())
        if ttl <= 0:
            return
        try:
            self._client.set(f"{KEY_PREFIX}{fingerprint}", "1", ex=ttl)
        except redis.RedisError as exc:
            logger.error("token_blacklist: revoke_failed error=%s", exc)
            raise DatabaseError("failed to blacklist access token") from exc

    def is_revoked(self, *, fingerprint: str, deadline: Deadline | None = None) -> bool:
        ensure_deadline(deadline).check("blacklist_lookup")
        try:
            return bool(self._client.exists(f"{KEY_PREFIX}{fingerprint}"))
        except redis.RedisError as exc:
            logger.error("token_blacklist: lookup_failed error=%s", exc)
            raise DatabaseError("failed to check access token blacklist") from exc
