from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from careers.api.errors import http_exception_for
from careers.schemas.applications import (
    ApplicationActionsOut,
    ApplicationActivityOut,
    ApplicationOut,
    ApplicationStatus,
    ApplicationTransitionRequest,
)
from careers.services.career import CareerService, get_career_service

router = APIRouter()


@router.get("", response_model=list[ApplicationOut])
async def list_applications(
    service: CareerService = Depends(get_career_service),
    position_id: str | None = Query(default=None),
    application_status: ApplicationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[ApplicationOut]:
    return await service.list_applications(
        position_id=position_id,
        status=application_status,
        limit=limit,
        offset=offset,
    )


@router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    service: CareerService = Depends(get_career_service),
) -> ApplicationOut:
    application = await service.get_application(application_id)
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="application not found")
    return application


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: str,
    service: CareerService = Depends(get_career_service),
) -> Response:
    result = await service.delete_application(application_id)
    if not result.success and result.error is not None:
        raise http_exception_for(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{application_id}/actions", response_model=ApplicationActionsOut)
async def application_actions(
    application_id: str,
    service: CareerService = Depends(get_career_service),
) -> ApplicationActionsOut:
    actions = await service.available_actions(application_id)
    if actions is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="application not found")
    return actions


@router.get("/{application_id}/activities", response_model=list[ApplicationActivityOut])
async def application_activities(
    application_id: str,
    service: CareerService = Depends(get_career_service),
) -> list[ApplicationActivityOut]:
    return await service.list_activities(application_id)


@router.post("/{application_id}/transitions", response_model=ApplicationOut)
async def transition_application(
    application_id: str,
    payload: ApplicationTransitionRequest,
    service: CareerService = Depends(get_career_service),
) -> ApplicationOut:
    result = await service.transition_application(application_id, payload.status, payload.notes)
    if not result.success or result.application is None:
        raise http_exception_for(result.error)
    return result.application
