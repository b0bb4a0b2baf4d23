"""Turning untrusted request payloads into models."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import KpiboardError, UpstreamError, ValidationError, describe_validation_error

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model_cls: Type[ModelT], payload: Any) -> ModelT:
    """Validate ``payload`` into ``model_cls``, raising :class:`ValidationError`."""
    if isinstance(payload, model_cls):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")
    try:
        return model_cls.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e


@contextmanager
def upstream_errors(operation: str) -> Iterator[None]:
    """Re-raise anything unexpected from a datastore call as :class:`UpstreamError`.

    The underlying message is kept; errors already in the taxonomy pass through.
    """
    try:
        yield
    except KpiboardError:
        raise
    except Exception as e:
        logger.error("%s failed: %s", operation, e)
        raise UpstreamError(str(e) or e.__class__.__name__) from e
