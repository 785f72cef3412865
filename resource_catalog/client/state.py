"""In-memory catalog state with search and optimistic mutations.

Each mutation is two-phase: the tentative change is applied locally right
away, then the repository call is awaited. On success the server's canonical
record replaces the tentative one; on failure the inverse change is applied.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from resource_catalog.client.repository import ResourceRepository, default_storage, temp_id
from resource_catalog.client.upload import ProgressCallback
from resource_catalog.errors import ResourceNotFoundError
from resource_catalog.models.schemas import (
    PREDEFINED_CATEGORIES,
    Resource,
    ResourceChanges,
    ResourceDraft,
    ResourceType,
    StorageInfo,
)

logger = structlog.get_logger()


@dataclass
class MutationResult:
    ok: bool
    item: Optional[Resource] = None
    error: Optional[BaseException] = None
    storage: Optional[StorageInfo] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


def matches(resource: Resource, query: str, category: Optional[str] = None) -> bool:
    """Case-insensitive substring match on title, category and description."""
    if category and resource.category != category:
        return False
    needle = query.strip().lower()
    if not needle:
        return True
    haystacks = (resource.title, resource.category, resource.description)
    return any(needle in (text or "").lower() for text in haystacks)


class CatalogState:
    """The loaded catalog plus derived views."""

    def __init__(self, repository: ResourceRepository):
        self.repository = repository
        self.resources: list[Resource] = []
        self.storage: StorageInfo = default_storage()

    async def load(self) -> list[Resource]:
        snapshot = await self.repository.get_all()
        self.resources = list(snapshot.resources)
        self.storage = snapshot.storage
        logger.info("CatalogState: Loaded", count=len(self.resources))
        return self.resources

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def categories(self) -> list[str]:
        return sorted({r.category for r in self.resources if r.category})

    @property
    def category_choices(self) -> list[str]:
        """Predefined categories first, then any others found in the catalog."""
        extra = [c for c in self.categories if c not in PREDEFINED_CATEGORIES]
        return list(PREDEFINED_CATEGORIES) + extra

    @property
    def notes(self) -> list[Resource]:
        return [r for r in self.resources if r.type == ResourceType.NOTE]

    @property
    def books(self) -> list[Resource]:
        return [r for r in self.resources if r.type == ResourceType.BOOK]

    def get(self, resource_id: str) -> Optional[Resource]:
        index = self._index(resource_id)
        return self.resources[index] if index >= 0 else None

    def search(self, query: str = "", category: Optional[str] = None) -> list[Resource]:
        return [r for r in self.resources if matches(r, query, category)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, draft: ResourceDraft, on_progress: Optional[ProgressCallback] = None) -> MutationResult:
        tentative = Resource(
            id=f"tmp_{temp_id()}",
            **draft.model_dump(exclude={"file_data"}),
        )
        self.resources.insert(0, tentative)

        try:
            result = await self.repository.create(draft, on_progress)
        except Exception as e:
            self._remove(tentative.id)
            logger.error("CatalogState: Create failed, rolled back", title=draft.title, error=str(e))
            return MutationResult(ok=False, error=e)

        item = result.item or tentative
        self._replace(tentative.id, item)
        self._update_storage(result.storage)
        return MutationResult(ok=True, item=item, storage=result.storage)

    async def edit(self, changes: ResourceChanges, on_progress: Optional[ProgressCallback] = None) -> MutationResult:
        previous = self.get(changes.id)
        if previous is None:
            return MutationResult(ok=False, error=ResourceNotFoundError(changes.id))

        update = changes.model_dump(exclude={"id", "file_data"}, exclude_none=True)
        tentative = previous.model_copy(update=update)
        self._replace(changes.id, tentative)

        try:
            result = await self.repository.update(changes, on_progress)
        except Exception as e:
            self._replace(changes.id, previous)
            logger.error("CatalogState: Edit failed, rolled back", resource_id=changes.id, error=str(e))
            return MutationResult(ok=False, error=e)

        item = result.item or tentative
        self._replace(changes.id, item)
        self._update_storage(result.storage)
        return MutationResult(ok=True, item=item, storage=result.storage)

    async def delete(self, resource_id: str) -> MutationResult:
        index = self._index(resource_id)
        if index < 0:
            return MutationResult(ok=False, error=ResourceNotFoundError(resource_id))

        previous = self.resources.pop(index)

        try:
            result = await self.repository.delete(resource_id)
        except Exception as e:
            self.resources.insert(min(index, len(self.resources)), previous)
            logger.error("CatalogState: Delete failed, rolled back", resource_id=resource_id, error=str(e))
            return MutationResult(ok=False, error=e)

        self._update_storage(result.storage)
        return MutationResult(ok=True, item=previous, storage=result.storage)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _index(self, resource_id: str) -> int:
        for index, resource in enumerate(self.resources):
            if resource.id == resource_id:
                return index
        return -1

    def _replace(self, resource_id: str, item: Resource) -> None:
        index = self._index(resource_id)
        if index >= 0:
            self.resources[index] = item

    def _remove(self, resource_id: str) -> None:
        index = self._index(resource_id)
        if index >= 0:
            del self.resources[index]

    def _update_storage(self, storage: Optional[StorageInfo]) -> None:
        if storage is not None:
            self.storage = storage
