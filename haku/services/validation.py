"""
Structural validation of untrusted state payloads.

Checks a parsed value against the model registered for a schema version.
Validation never raises: a mismatch is reported as a ValidationFailure and no
part of the payload is accepted.
"""

from dataclasses import dataclass, field
from typing import Any, List, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from haku.logging_config import get_logger
from haku.state_schema import (
    PersistedStateV1,
    PersistedStateV2,
    VersionedState,
    is_supported_version,
)

logger = get_logger(__name__)

_versioned_adapter: TypeAdapter = TypeAdapter(VersionedState)


@dataclass
class ValidationFailure:
    """Why a payload did not match the shape of a schema version."""

    version: Any
    errors: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"schema version {self.version!r}: " + "; ".join(self.errors)


def _format_errors(exc: PydanticValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        messages.append(f"{location}: {error['msg']}")
    return messages


def validate_payload(
    raw: Any,
    version: Any,
) -> Union[PersistedStateV1, PersistedStateV2, ValidationFailure]:
    """
    Validate a raw payload against the shape of the given schema version.

    The version tag found on the payload itself is ignored; ``version`` decides
    which shape applies.

    Args:
        raw: Parsed, untrusted value
        version: Schema version to validate against

    Returns:
        The typed versioned state, or a ValidationFailure describing every
        mismatch
    """
    if not is_supported_version(version):
        return ValidationFailure(version, [f"unsupported schema version {version!r}"])

    if not isinstance(raw, dict):
        return ValidationFailure(version, [f"expected an object, got {type(raw).__name__}"])

    try:
        return _versioned_adapter.validate_python({**raw, "version": version})
    except PydanticValidationError as e:
        failure = ValidationFailure(version, _format_errors(e))
        logger.debug(f"Payload rejected: {failure}")
        return failure

