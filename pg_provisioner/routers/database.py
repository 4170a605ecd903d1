from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from .. import schemas
from ..config import Settings, get_settings
from ..connection import InvalidSslModeError, database_exists, ssl_context_for
from ..service import provision_database
from ..sql import InvalidIdentifierError
from ._binding import bind_body_or_query, require_connection_fields

router = APIRouter(tags=["database"])


@router.get("/Database")
def get_database(
    request: Request,
    payload: Optional[schemas.ConnectionTarget] = None,
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """200 with true when the database exists, 404 with false otherwise."""
    target = bind_body_or_query(schemas.ConnectionTarget, payload, request)
    require_connection_fields(target)
    try:
        ssl_context_for(target.ssl_mode)
    except InvalidSslModeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    if database_exists(target, settings):
        return JSONResponse(status_code=status.HTTP_200_OK, content=True)
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=False)


@router.post("/Database", status_code=status.HTTP_201_CREATED, response_model=str)
def create_database(
    payload: schemas.ProvisionRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> str:
    require_connection_fields(payload)
    try:
        provision_database(payload, settings)
    except (InvalidIdentifierError, InvalidSslModeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    response.headers["Location"] = "/Database"
    return payload.database_name
