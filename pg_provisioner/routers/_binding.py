from typing import Optional, Type, TypeVar

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..schemas import ConnectionTarget
from ..service import validate_connection_target

T = TypeVar("T", bound=ConnectionTarget)


def bind_body_or_query(model: Type[T], payload: Optional[T], request: Request) -> T:
    """GET callers may send the target as a JSON body or as query parameters."""
    if payload is not None:
        return payload
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


def require_connection_fields(target: ConnectionTarget) -> None:
    message = validate_connection_target(target)
    if message:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
        )
