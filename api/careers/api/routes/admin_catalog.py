from fastapi import APIRouter, Depends, Query, Response, status

from careers.api.errors import http_exception_for, raise_repository_error
from careers.schemas.reference import (
    ReferenceCreateRequest,
    ReferenceKind,
    ReferenceOut,
    ReferenceUpdateRequest,
    ReferenceUsageOut,
)
from careers.services.career import CareerService, get_career_service
from careers.services.repository import RepositoryError, get_repository

router = APIRouter()


@router.get("/{kind}", response_model=list[ReferenceOut])
async def list_reference(
    kind: ReferenceKind,
    repository=Depends(get_repository),
    include_retired: bool = Query(default=True),
) -> list[ReferenceOut]:
    try:
        rows = await repository.list_reference(kind, include_retired=include_retired)
    except RepositoryError as exc:
        raise_repository_error(exc)
    return [ReferenceOut(**row) for row in rows]


@router.post("/{kind}", response_model=ReferenceOut, status_code=status.HTTP_201_CREATED)
async def create_reference(
    kind: ReferenceKind,
    payload: ReferenceCreateRequest,
    repository=Depends(get_repository),
) -> ReferenceOut:
    try:
        row = await repository.create_reference(
            kind,
            name=payload.name,
            description=payload.description,
            sort_order=payload.sort_order,
            attributes=payload.attributes,
        )
    except RepositoryError as exc:
        raise_repository_error(exc)
    return ReferenceOut(**row)


@router.patch("/{kind}/{reference_id}", response_model=ReferenceOut)
async def update_reference(
    kind: ReferenceKind,
    reference_id: str,
    payload: ReferenceUpdateRequest,
    repository=Depends(get_repository),
) -> ReferenceOut:
    try:
        row = await repository.update_reference(kind, reference_id, payload.model_dump(exclude_unset=True))
    except RepositoryError as exc:
        raise_repository_error(exc)
    return ReferenceOut(**row)


@router.delete("/{kind}/{reference_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reference(
    kind: ReferenceKind,
    reference_id: str,
    service: CareerService = Depends(get_career_service),
) -> Response:
    result = await service.delete_reference(kind, reference_id)
    if not result.success and result.error is not None:
        raise http_exception_for(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{kind}/{reference_id}/usage", response_model=ReferenceUsageOut)
async def reference_usage(
    kind: ReferenceKind,
    reference_id: str,
    repository=Depends(get_repository),
) -> ReferenceUsageOut:
    try:
        count = await repository.count_reference_usage(kind, reference_id)
    except RepositoryError as exc:
        raise_repository_error(exc)
    return ReferenceUsageOut(kind=kind, id=reference_id, positions_count=count)


@router.post("/{kind}/{reference_id}/retire", response_model=ReferenceOut)
async def retire_reference(kind: ReferenceKind, reference_id: str, repository=Depends(get_repository)) -> ReferenceOut:
    try:
        row = await repository.set_reference_lifecycle(kind, reference_id, "retired")
    except RepositoryError as exc:
        raise_repository_error(exc)
    return ReferenceOut(**row)


@router.post("/{kind}/{reference_id}/reactivate", response_model=ReferenceOut)
async def reactivate_reference(
    kind: ReferenceKind,
    reference_id: str,
    repository=Depends(get_repository),
) -> ReferenceOut:
    try:
        row = await repository.set_reference_lifecycle(kind, reference_id, "active")
    except RepositoryError as exc:
        raise_repository_error(exc)
    return ReferenceOut(**row)
