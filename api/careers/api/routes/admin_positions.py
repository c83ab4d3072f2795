from fastapi import APIRouter, Depends, Query, status

from careers.api.errors import raise_repository_error
from careers.schemas.positions import (
    PositionCreateRequest,
    PositionOut,
    PositionPageOut,
    PositionSkillsPutRequest,
    PositionSort,
    PositionStatus,
    PositionStatusRequest,
    PositionUpdateRequest,
)
from careers.services.career import CareerService, get_career_service
from careers.services.catalog import PositionFilterSpec
from careers.services.repository import RepositoryError, get_repository

router = APIRouter()


@router.get("", response_model=PositionPageOut)
async def list_positions(
    service: CareerService = Depends(get_career_service),
    search: str | None = Query(default=None),
    category: str | None = Query(default=None),
    location: str | None = Query(default=None),
    position_type: str | None = Query(default=None, alias="type"),
    level: str | None = Query(default=None),
    remote: bool | None = Query(default=None),
    featured: bool | None = Query(default=None),
    salary_min: int | None = Query(default=None, ge=0),
    salary_max: int | None = Query(default=None, ge=0),
    position_status: PositionStatus | None = Query(default=None, alias="status"),
    sort: PositionSort = Query(default="newest"),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
) -> PositionPageOut:
    spec = PositionFilterSpec(
        category=category,
        location=location,
        position_type=position_type,
        level=level,
        remote=remote,
        featured=featured,
        salary_min=salary_min,
        salary_max=salary_max,
        search=search,
        status=position_status,
    )
    return await service.search(spec, sort=sort, page=page, limit=limit, catalog_only=False)


@router.post("", response_model=PositionOut, status_code=status.HTTP_201_CREATED)
async def create_position(payload: PositionCreateRequest, repository=Depends(get_repository)) -> PositionOut:
    try:
        row = await repository.create_position(payload.model_dump())
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.get("/{position_id}", response_model=PositionOut)
async def get_position(position_id: str, repository=Depends(get_repository)) -> PositionOut:
    try:
        row = await repository.get_position(position_id)
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.patch("/{position_id}", response_model=PositionOut)
async def update_position(
    position_id: str,
    payload: PositionUpdateRequest,
    repository=Depends(get_repository),
) -> PositionOut:
    try:
        row = await repository.update_position(position_id, payload.model_dump(exclude_unset=True))
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.post("/{position_id}/status", response_model=PositionOut)
async def set_position_status(
    position_id: str,
    payload: PositionStatusRequest,
    repository=Depends(get_repository),
) -> PositionOut:
    try:
        row = await repository.set_position_status(position_id, payload.status)
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.post("/{position_id}/retire", response_model=PositionOut)
async def retire_position(position_id: str, repository=Depends(get_repository)) -> PositionOut:
    try:
        row = await repository.set_position_lifecycle(position_id, "retired")
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.post("/{position_id}/reactivate", response_model=PositionOut)
async def reactivate_position(position_id: str, repository=Depends(get_repository)) -> PositionOut:
    try:
        row = await repository.set_position_lifecycle(position_id, "active")
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)


@router.put("/{position_id}/skills", response_model=PositionOut)
async def replace_position_skills(
    position_id: str,
    payload: PositionSkillsPutRequest,
    repository=Depends(get_repository),
) -> PositionOut:
    try:
        row = await repository.replace_position_skills(
            position_id,
            [skill.model_dump() for skill in payload.skills],
        )
    except RepositoryError as exc:
        raise_repository_error(exc)
    return PositionOut(**row)
