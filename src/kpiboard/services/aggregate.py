"""Aggregate query executor and its cached runner."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional, Union

from kpiboard.capabilities.semantic import (
    AggregateCache,
    AggregateProcedure,
    AggregateRequest,
    AggregateResult,
    AggregateRunResult,
)
from kpiboard.core.auth import Credential, require_credential
from kpiboard.core.errors import ValidationError
from kpiboard.core.parsing import parse_payload, upstream_errors

from .preferences import FilterPresetService

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0


class AggregateQueryExecutor:
    """Validates an aggregate request and forwards it to the procedure.

    Only ``boardId`` and a non-empty ``metrics`` list are checked; filters and
    date bounds are passed through as given. Each call is independent: there is
    no retry, no caching and no state shared between requests.
    """

    def __init__(self, procedure: AggregateProcedure) -> None:
        self._procedure = procedure

    async def execute(
        self,
        request: Union[AggregateRequest, Mapping[str, Any]],
        *,
        credential: Optional[Credential],
    ) -> AggregateResult:
        credential = require_credential(credential)
        parsed = parse_payload(AggregateRequest, request)
        logger.info(
            "Aggregate board=%s metrics=%s dimensions=%s limit=%s",
            parsed.board_id,
            parsed.metrics,
            parsed.dimensions,
            parsed.limit,
        )
        with upstream_errors("aggregate query"):
            return await self._procedure.aggregate(parsed, credential=credential)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def aggregate_signature(request: AggregateRequest) -> str:
    """SHA-1 of the request's canonical JSON; equal queries share a signature."""
    payload = request.model_dump(mode="json", by_alias=True)
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


class CachedAggregateRunner:
    """Aggregate queries answered from a short-lived result cache.

    Results, empty ones included, are kept under the request signature for
    ``ttl_seconds``. The cache never fails a query: a failed read falls through
    to the executor and a failed write is only logged.

    Args:
        executor: The uncached executor that runs misses
        cache: Result cache backend
        presets: Enables ``preset=`` on :meth:`run`
        ttl_seconds: Lifetime of a cache entry
        clock: Returns the current aware datetime; for tests
    """

    def __init__(
        self,
        executor: AggregateQueryExecutor,
        cache: AggregateCache,
        *,
        presets: Optional[FilterPresetService] = None,
        ttl_seconds: float = DEFAULT_CACHE_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._executor = executor
        self._cache = cache
        self._presets = presets
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or _utcnow

    async def run(
        self,
        request: Union[AggregateRequest, Mapping[str, Any]],
        *,
        credential: Optional[Credential],
        preset: Optional[str] = None,
    ) -> AggregateRunResult:
        credential = require_credential(credential)
        parsed = parse_payload(AggregateRequest, request)
        if preset is not None:
            if self._presets is None:
                raise ValidationError("filter presets are not configured")
            parsed = await self._presets.apply(parsed, preset, credential=credential)

        signature = aggregate_signature(parsed)
        try:
            hit = await self._cache.get(signature, now=self._clock(), credential=credential)
        except Exception as e:
            logger.warning("Aggregate cache read failed, running query: %s", e)
            hit = None
        if hit is not None:
            logger.info("Aggregate cache hit board=%s signature=%s", parsed.board_id, signature)
            return AggregateRunResult(rows=hit.rows, sql=hit.sql, cached=True)

        result = await self._executor.execute(parsed, credential=credential)
        try:
            await self._cache.put(
                signature,
                result,
                expires_at=self._clock() + self._ttl,
                credential=credential,
            )
        except Exception as e:
            logger.warning("Aggregate cache write failed: %s", e)
        return AggregateRunResult(rows=result.rows, sql=result.sql, cached=False)
