from typing import NoReturn

from fastapi import HTTPException, status

from careers.schemas.results import OperationError
from careers.services.repository import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

_STATUS_BY_KIND = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invariant": status.HTTP_409_CONFLICT,
}


def http_exception_for(error: OperationError) -> HTTPException:
    if error.kind == "persistence":
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if error.reason == "unavailable"
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    else:
        status_code = _STATUS_BY_KIND[error.kind]
    return HTTPException(status_code=status_code, detail=error.model_dump())


def raise_repository_error(exc: RepositoryError) -> NoReturn:
    if isinstance(exc, RepositoryUnavailableError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, RepositoryNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, RepositoryConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, RepositoryValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
