from fastapi import APIRouter, Depends

from careers.schemas.reference import ReferenceKind, ReferenceOut
from careers.services.career import CareerService, get_career_service

router = APIRouter()


@router.get("/{kind}", response_model=list[ReferenceOut])
async def list_reference(
    kind: ReferenceKind,
    service: CareerService = Depends(get_career_service),
) -> list[ReferenceOut]:
    return await service.list_reference(kind)
