from fastapi import APIRouter, Depends, HTTPException, Query, status

from careers.schemas.positions import PositionOut, PositionPageOut, PositionSort
from careers.services.career import CareerService, get_career_service
from careers.services.catalog import PositionFilterSpec

router = APIRouter()


@router.get("", response_model=PositionPageOut)
async def search_positions(
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
    )
    return await service.search(spec, sort=sort, page=page, limit=limit)


@router.get("/featured", response_model=list[PositionOut])
async def featured_positions(
    service: CareerService = Depends(get_career_service),
    limit: int | None = Query(default=None, ge=1, le=50),
) -> list[PositionOut]:
    return await service.featured(limit=limit)


@router.get("/{slug}", response_model=PositionOut)
async def get_position(slug: str, service: CareerService = Depends(get_career_service)) -> PositionOut:
    position = await service.get_by_slug(slug)
    if position is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="position not found")
    return position


@router.get("/{position_id}/related", response_model=list[PositionOut])
async def related_positions(
    position_id: str,
    service: CareerService = Depends(get_career_service),
    category_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=20),
) -> list[PositionOut]:
    return await service.get_related(position_id, category_id, limit=limit)
