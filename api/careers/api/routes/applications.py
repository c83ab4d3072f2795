from fastapi import APIRouter, Depends, status

from careers.api.errors import http_exception_for
from careers.schemas.applications import ApplicationSubmitRequest
from careers.schemas.results import ApplicationResult
from careers.services.career import CareerService, get_career_service

router = APIRouter()


@router.post("", response_model=ApplicationResult, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: ApplicationSubmitRequest,
    service: CareerService = Depends(get_career_service),
) -> ApplicationResult:
    result = await service.submit_application(payload)
    if not result.success and result.error is not None:
        raise http_exception_for(result.error)
    return result
