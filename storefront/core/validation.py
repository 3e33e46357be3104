"""Use-case request validation.

Requests are pydantic models; a failed parse becomes a
``UseCaseValidationError`` with one ``"field: message"`` string per problem.
"""

from __future__ import annotations

import re
import uuid
from typing import Annotated, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from storefront.core.exceptions import UseCaseValidationError

TRANSACTION_HASH_ERROR_MESSAGE = "Must be a hexadecimal value and start with 0x"

# 32-byte EVM transaction id: "0x" + 64 hex characters
TRANSACTION_HASH_LENGTH = 66

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")

RequestT = TypeVar("RequestT", bound=BaseModel)


def validate_transaction_hash(value: str) -> str:
    value = value.strip().lower()
    if not _HEX_RE.match(value):
        raise ValueError(TRANSACTION_HASH_ERROR_MESSAGE)
    return value


TransactionHash = Annotated[str, AfterValidator(validate_transaction_hash)]


def validate_entity_id(value: str) -> str:
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        raise ValueError("Must be a valid UUID") from None


EntityId = Annotated[str, AfterValidator(validate_entity_id)]

ChainId = Annotated[int, Field(gt=0)]


class UseCaseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _format_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "request"
        message = err["msg"]
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(f"{field}: {message}")
    return errors


def validate_request(schema: type[RequestT], **data) -> RequestT:
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise UseCaseValidationError(_format_errors(exc)) from exc
