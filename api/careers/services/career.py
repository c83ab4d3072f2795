from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends
from opentelemetry import trace

from careers.core.config import Settings, get_settings
from careers.schemas.applications import (
    ApplicationActionsOut,
    ApplicationActivityOut,
    ApplicationOut,
    ApplicationSubmitRequest,
)
from careers.schemas.positions import PositionOut, PositionPageOut
from careers.schemas.reference import ReferenceOut
from careers.schemas.results import ApplicationResult, OperationError, OperationResult
from careers.services.catalog import (
    DEFAULT_POSITION_SORT,
    PositionFilterSpec,
    resolve_page_window,
    total_pages,
)
from careers.services.intake import IntakeValidationError, prepare_application
from careers.services.lifecycle import (
    TransitionNotAllowedError,
    available_application_actions,
    can_delete_application,
    ensure_application_transition,
)
from careers.services.related import find_related_positions
from careers.services.reference import REFERENCE_TABLES
from careers.services.repository import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    RepositoryWriteError,
    get_repository,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def failure_from_repository_error(exc: RepositoryError) -> OperationError:
    if isinstance(exc, RepositoryNotFoundError):
        return OperationError(kind="not_found", message=str(exc))
    if isinstance(exc, RepositoryConflictError):
        return OperationError(kind="invariant", message=str(exc), reason="conflict")
    if isinstance(exc, RepositoryValidationError):
        return OperationError(kind="validation", message=str(exc), reason="rejected_by_storage")
    if isinstance(exc, RepositoryWriteError):
        return OperationError(
            kind="persistence",
            message=exc.message,
            code=exc.code,
            detail=exc.detail,
            hint=exc.hint,
        )
    if isinstance(exc, RepositoryUnavailableError):
        return OperationError(kind="persistence", message=str(exc), reason="unavailable")
    return OperationError(kind="persistence", message=str(exc))


class CareerService:
    """Catalog reads and the application lifecycle over one repository.

    Reads never raise: storage failures are logged with full detail and turned into
    an empty result. Writes return an OperationResult carrying a typed error.
    """

    def __init__(self, repository: Any, settings: Settings) -> None:
        self.repository = repository
        self.settings = settings

    # Catalog

    async def search(
        self,
        spec: PositionFilterSpec,
        *,
        sort: str = DEFAULT_POSITION_SORT,
        page: int | None = 1,
        limit: int | None = None,
        catalog_only: bool = True,
    ) -> PositionPageOut:
        window = resolve_page_window(
            page,
            limit,
            default_limit=self.settings.catalog_default_page_size,
            max_limit=self.settings.catalog_max_page_size,
        )
        with tracer.start_as_current_span("careers.positions.search") as span:
            span.set_attribute("careers.search.sort", sort)
            span.set_attribute("careers.search.page", window.page)
            span.set_attribute("careers.search.catalog_only", catalog_only)
            try:
                rows, total = await self.repository.search_positions(
                    spec,
                    sort=sort,
                    window=window,
                    catalog_only=catalog_only,
                )
            except RepositoryError:
                logger.exception(
                    "position search failed sort=%s page=%s limit=%s filters=%s",
                    sort,
                    window.page,
                    window.limit,
                    spec,
                )
                return PositionPageOut(positions=[], total=0, total_pages=0, page=window.page, limit=window.limit)
            span.set_attribute("careers.search.total", total)

        return PositionPageOut(
            positions=[PositionOut(**row) for row in rows],
            total=total,
            total_pages=total_pages(total, window.limit),
            page=window.page,
            limit=window.limit,
        )

    async def featured(self, *, limit: int | None = None) -> list[PositionOut]:
        resolved_limit = limit or self.settings.featured_positions_limit
        try:
            rows = await self.repository.list_featured_positions(limit=resolved_limit)
        except RepositoryError:
            logger.exception("featured positions lookup failed limit=%s", resolved_limit)
            return []
        return [PositionOut(**row) for row in rows]

    async def get_by_slug(self, slug: str) -> PositionOut | None:
        try:
            row = await self.repository.get_catalog_position_by_slug(slug)
        except RepositoryError:
            logger.exception("position lookup failed slug=%s", slug)
            return None
        if row is None:
            return None

        views_count = int(row.get("views_count") or 0) + 1
        try:
            await self.repository.record_position_view(position_id=row["id"], views_count=views_count)
        except RepositoryError:
            logger.exception("position view count update failed position_id=%s", row["id"])
        else:
            row = {**row, "views_count": views_count}
        return PositionOut(**row)

    async def get_related(
        self,
        position_id: str,
        category_id: str | None,
        *,
        limit: int | None = None,
    ) -> list[PositionOut]:
        resolved_limit = self.settings.related_positions_limit if limit is None else limit
        try:
            rows = await find_related_positions(
                self.repository,
                position_id=position_id,
                category_id=category_id,
                limit=resolved_limit,
            )
        except RepositoryError:
            logger.exception(
                "related positions lookup failed position_id=%s category_id=%s",
                position_id,
                category_id,
            )
            return []
        return [PositionOut(**row) for row in rows]

    # Applications

    async def submit_application(self, payload: ApplicationSubmitRequest) -> ApplicationResult:
        try:
            fields = prepare_application(payload)
        except IntakeValidationError as exc:
            logger.info("application rejected reason=%s fields=%s", exc.reason, ",".join(exc.fields))
            return ApplicationResult(
                success=False,
                error=OperationError(kind="validation", message=str(exc), reason=exc.reason, fields=exc.fields),
            )

        try:
            row = await self.repository.create_application(fields)
        except RepositoryError as exc:
            return ApplicationResult(success=False, error=self._write_failure(exc, "application intake", fields["position_id"]))

        logger.info("application submitted application_id=%s position_id=%s", row["id"], row["position_id"])
        return ApplicationResult(success=True, application_id=row["id"], application=ApplicationOut(**row))

    async def list_applications(
        self,
        *,
        position_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ApplicationOut]:
        try:
            rows = await self.repository.list_applications(
                position_id=position_id,
                status=status,
                limit=limit,
                offset=offset,
            )
        except RepositoryError:
            logger.exception("application listing failed position_id=%s status=%s", position_id, status)
            return []
        return [ApplicationOut(**row) for row in rows]

    async def get_application(self, application_id: str) -> ApplicationOut | None:
        try:
            row = await self.repository.get_application(application_id)
        except RepositoryNotFoundError:
            return None
        except RepositoryError:
            logger.exception("application lookup failed application_id=%s", application_id)
            return None
        return ApplicationOut(**row)

    async def transition_application(
        self,
        application_id: str,
        status: str,
        notes: str | None = None,
    ) -> ApplicationResult:
        with tracer.start_as_current_span("careers.application.transition") as span:
            span.set_attribute("careers.application.id", application_id)
            span.set_attribute("careers.application.target_status", status)
            try:
                current = await self.repository.get_application(application_id)
            except RepositoryError as exc:
                return ApplicationResult(success=False, error=self._write_failure(exc, "application transition", application_id))

            try:
                ensure_application_transition(current["status"], status)
            except TransitionNotAllowedError as exc:
                logger.info(
                    "application transition refused application_id=%s from=%s to=%s",
                    application_id,
                    exc.from_state,
                    exc.to_state,
                )
                return ApplicationResult(
                    success=False,
                    application_id=application_id,
                    error=OperationError(kind="invariant", message=str(exc), reason="transition_not_allowed"),
                )

            try:
                row = await self.repository.transition_application(
                    application_id=application_id,
                    status=status,
                    notes=notes,
                )
            except RepositoryError as exc:
                return ApplicationResult(success=False, error=self._write_failure(exc, "application transition", application_id))

        logger.info(
            "application transitioned application_id=%s from=%s to=%s",
            application_id,
            current["status"],
            row["status"],
        )
        return ApplicationResult(success=True, application_id=application_id, application=ApplicationOut(**row))

    async def delete_application(self, application_id: str) -> OperationResult:
        try:
            current = await self.repository.get_application(application_id)
        except RepositoryError as exc:
            return OperationResult(success=False, error=self._write_failure(exc, "application delete", application_id))

        if not can_delete_application(current["status"]):
            return OperationResult(
                success=False,
                error=OperationError(
                    kind="invariant",
                    message=f"application in status {current['status']} cannot be deleted",
                    reason="not_deletable",
                ),
            )

        try:
            await self.repository.delete_application(application_id)
        except RepositoryError as exc:
            return OperationResult(success=False, error=self._write_failure(exc, "application delete", application_id))

        logger.info("application deleted application_id=%s", application_id)
        return OperationResult(success=True)

    async def list_activities(self, application_id: str) -> list[ApplicationActivityOut]:
        try:
            rows = await self.repository.list_application_activities(application_id)
        except RepositoryError:
            logger.exception("application activity lookup failed application_id=%s", application_id)
            return []
        return [ApplicationActivityOut(**row) for row in rows]

    async def available_actions(self, application_id: str) -> ApplicationActionsOut | None:
        application = await self.get_application(application_id)
        if application is None:
            return None
        return ApplicationActionsOut(
            application_id=application.id,
            status=application.status,
            actions=available_application_actions(application.status),
        )

    # Reference catalog

    async def list_reference(self, kind: str) -> list[ReferenceOut]:
        if kind not in REFERENCE_TABLES:
            logger.warning("reference listing requested for unknown kind=%s", kind)
            return []
        try:
            rows = await self.repository.list_reference(kind, include_retired=False)
        except RepositoryError:
            logger.exception("reference listing failed kind=%s", kind)
            return []
        return [ReferenceOut(**row) for row in rows]

    async def delete_reference(self, kind: str, reference_id: str) -> OperationResult:
        if kind not in REFERENCE_TABLES:
            return OperationResult(
                success=False,
                error=OperationError(
                    kind="validation",
                    message=f"unknown reference kind: {kind}",
                    reason="unknown_kind",
                    fields=["kind"],
                ),
            )

        try:
            usage = await self.repository.count_reference_usage(kind, reference_id)
        except RepositoryError as exc:
            return OperationResult(success=False, error=self._write_failure(exc, f"{kind} delete", reference_id))

        if usage > 0:
            return OperationResult(
                success=False,
                error=OperationError(
                    kind="invariant",
                    message=f"{kind} entry is still referenced by {usage} positions",
                    reason="in_use",
                    detail=str(usage),
                ),
            )

        try:
            await self.repository.delete_reference(kind, reference_id)
        except RepositoryError as exc:
            return OperationResult(success=False, error=self._write_failure(exc, f"{kind} delete", reference_id))

        logger.info("reference entry deleted kind=%s id=%s", kind, reference_id)
        return OperationResult(success=True)

    @staticmethod
    def _write_failure(exc: RepositoryError, operation: str, subject_id: str) -> OperationError:
        error = failure_from_repository_error(exc)
        if error.kind == "persistence":
            logger.exception(
                "%s failed id=%s code=%s detail=%s hint=%s",
                operation,
                subject_id,
                error.code,
                error.detail,
                error.hint,
            )
        return error


def get_career_service(
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> CareerService:
    return CareerService(repository, settings)
