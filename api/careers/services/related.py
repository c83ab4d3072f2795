from __future__ import annotations

from typing import Any, Protocol


class RelatedPositionSource(Protocol):
    async def list_recent_catalog_positions(
        self,
        *,
        limit: int,
        category_id: str | None = None,
        exclude_category_id: str | None = None,
        exclude_ids: list[str] | None = None,
    ) -> list[dict[str, Any]]: ...


def merge_related(
    primary: list[dict[str, Any]],
    backfill: list[dict[str, Any]],
    *,
    source_id: str,
    limit: int,
) -> list[dict[str, Any]]:
    selected: list[dict[str, Any]] = []
    seen = {source_id}
    for row in [*primary, *backfill]:
        if len(selected) >= limit:
            break
        if row["id"] in seen:
            continue
        seen.add(row["id"])
        selected.append(row)
    return selected


async def find_related_positions(
    repository: RelatedPositionSource,
    *,
    position_id: str,
    category_id: str | None,
    limit: int,
) -> list[dict[str, Any]]:
    """Same-category positions first, then the newest from other categories."""
    if limit <= 0 or not category_id:
        return []

    primary = await repository.list_recent_catalog_positions(
        limit=limit,
        category_id=category_id,
        exclude_ids=[position_id],
    )
    primary = merge_related(primary, [], source_id=position_id, limit=limit)
    if len(primary) >= limit:
        return primary

    backfill = await repository.list_recent_catalog_positions(
        limit=limit - len(primary),
        exclude_category_id=category_id,
        exclude_ids=[position_id, *(row["id"] for row in primary)],
    )
    return merge_related(primary, backfill, source_id=position_id, limit=limit)
