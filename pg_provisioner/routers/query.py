from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .. import schemas
from ..config import Settings, get_settings
from ..connection import InvalidSslModeError
from ..service import (
    DatabaseNotFoundError,
    QueryExecutionError,
    run_read_query,
    run_write_query,
)
from ._binding import bind_body_or_query, require_connection_fields

router = APIRouter(tags=["query"])


@router.get("/Query", response_model=List[Dict[str, str]])
def get_data(
    request: Request,
    payload: Optional[schemas.QueryRequest] = None,
    settings: Settings = Depends(get_settings),
) -> List[Dict[str, str]]:
    query = bind_body_or_query(schemas.QueryRequest, payload, request)
    require_connection_fields(query)

    try:
        return run_read_query(query, settings)
    except InvalidSslModeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    except DatabaseNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except QueryExecutionError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post(
    "/Query",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=schemas.QueryAccepted,
)
def run_query(
    payload: schemas.QueryRequest,
    settings: Settings = Depends(get_settings),
) -> schemas.QueryAccepted:
    require_connection_fields(payload)

    # Driver errors are left to the app-level handler (500)
    try:
        run_write_query(payload, settings)
    except InvalidSslModeError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    except DatabaseNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return schemas.QueryAccepted(database_name=payload.database_name)
