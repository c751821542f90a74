"""Sprint lifecycle and backlog management.

Lifecycle: Planning -> Active -> Completed. Completing a sprint locks it;
locked or completed sprints accept no edits and no new stories.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.exceptions import ConflictError, ValidationError
from projecthub.models.agile import Sprint, Story
from projecthub.models.enums import SprintStatus, StoryStatus
from projecthub.models.project import Board
from projecthub.services.lookup import get_or_404

logger = structlog.get_logger()

DATE_ORDER_MESSAGE = "End date must be after start date"


@dataclass
class SprintProgress:
    total_stories: int
    completed_stories: int
    total_points: int
    completed_points: int

    @property
    def percent(self) -> int:
        if self.total_stories == 0:
            return 0
        return round(self.completed_stories * 100 / self.total_stories)


def check_date_order(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ValidationError(DATE_ORDER_MESSAGE, field="endDate")


class SprintService:
    """Service for sprint transitions and story scheduling."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, sprint_id: UUID, *, for_update: bool = False) -> Sprint:
        return await get_or_404(self.db, Sprint, sprint_id, for_update=for_update)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(
        self,
        board_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        goal: str | None = None,
    ) -> Sprint:
        """Create a sprint in Planning on ``board_id``."""
        check_date_order(start_date, end_date)
        board = await get_or_404(self.db, Board, board_id)
        if board.is_archived:
            raise ConflictError("Cannot add sprints to an archived board")

        sprint = Sprint(
            board_id=board.id,
            name=name,
            goal=goal,
            start_date=start_date,
            end_date=end_date,
            status=SprintStatus.PLANNING,
            is_locked=False,
        )
        self.db.add(sprint)
        await self.db.flush()

        logger.info("Sprint created", sprint_id=str(sprint.id), board_id=str(board.id))
        return sprint

    async def update(self, sprint: Sprint, changes: dict[str, Any]) -> Sprint:
        """Apply field changes; the merged dates must stay ordered."""
        if sprint.is_locked or sprint.status == SprintStatus.COMPLETED:
            raise ConflictError("Cannot modify a locked or completed sprint")

        start_date = changes.get("start_date", sprint.start_date)
        end_date = changes.get("end_date", sprint.end_date)
        check_date_order(start_date, end_date)

        for field, value in changes.items():
            setattr(sprint, field, value)
        await self.db.flush()
        return sprint

    async def delete(self, sprint: Sprint) -> int:
        """Delete a Planning sprint, returning its stories to the backlog."""
        if sprint.status != SprintStatus.PLANNING:
            raise ConflictError("Only sprints in Planning can be deleted")

        returned = await self._return_stories_to_backlog(sprint.id, only_incomplete=False)
        await self.db.delete(sprint)
        await self.db.flush()

        logger.info("Sprint deleted", sprint_id=str(sprint.id), stories_returned=returned)
        return returned

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start(self, sprint_id: UUID) -> Sprint:
        """Planning -> Active, provided the board has no other Active sprint."""
        sprint = await self.get(sprint_id, for_update=True)
        if sprint.status != SprintStatus.PLANNING:
            raise ConflictError(
                f"Only sprints in Planning can be started (current status: {sprint.status.value})"
            )

        active_id = await self.db.scalar(
            select(Sprint.id).where(
                Sprint.board_id == sprint.board_id,
                Sprint.status == SprintStatus.ACTIVE,
                Sprint.id != sprint.id,
            )
        )
        if active_id is not None:
            raise ConflictError("This board already has an active sprint")

        sprint.status = SprintStatus.ACTIVE
        sprint.started_at = datetime.now(timezone.utc)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race against a concurrent start on the same board
            raise ConflictError("This board already has an active sprint") from None

        logger.info("Sprint started", sprint_id=str(sprint.id), board_id=str(sprint.board_id))
        return sprint

    async def complete(self, sprint_id: UUID, move_incomplete_to_backlog: bool = True) -> Sprint:
        """Active -> Completed. The sprint is locked afterwards."""
        sprint = await self.get(sprint_id, for_update=True)
        if sprint.status != SprintStatus.ACTIVE:
            raise ConflictError(
                f"Only active sprints can be completed (current status: {sprint.status.value})"
            )

        sprint.status = SprintStatus.COMPLETED
        sprint.is_locked = True
        sprint.completed_at = datetime.now(timezone.utc)

        returned = 0
        if move_incomplete_to_backlog:
            returned = await self._return_stories_to_backlog(sprint.id, only_incomplete=True)
        await self.db.flush()

        logger.info("Sprint completed", sprint_id=str(sprint.id), stories_returned=returned)
        return sprint

    # =========================================================================
    # Stories
    # =========================================================================

    async def assign_story(self, story_id: UUID, sprint_id: UUID | None) -> Story:
        """Schedule a story into a sprint, or return it to the backlog with None."""
        story = await get_or_404(self.db, Story, story_id)

        if sprint_id is None:
            story.sprint_id = None
            await self.db.flush()
            logger.info("Story moved to backlog", story_id=str(story.id))
            return story

        sprint = await self.get(sprint_id)
        if sprint.is_locked or sprint.status == SprintStatus.COMPLETED:
            raise ConflictError("Cannot add stories to a locked or completed sprint")
        if not story.is_ready:
            raise ValidationError(
                "Story must be marked ready before it can be added to a sprint",
                field="sprintId",
            )

        board_project_id = await self.db.scalar(
            select(Board.project_id).where(Board.id == sprint.board_id)
        )
        if board_project_id != story.project_id:
            raise ValidationError("Sprint belongs to a different project", field="sprintId")

        story.sprint_id = sprint.id
        await self.db.flush()

        logger.info("Story assigned to sprint", story_id=str(story.id), sprint_id=str(sprint.id))
        return story

    async def progress(self, sprint_id: UUID) -> SprintProgress:
        done = Story.status == StoryStatus.DONE
        row = (
            await self.db.execute(
                select(
                    func.count(Story.id),
                    func.count(Story.id).filter(done),
                    func.coalesce(func.sum(Story.points), 0),
                    func.coalesce(func.sum(Story.points).filter(done), 0),
                ).where(Story.sprint_id == sprint_id)
            )
        ).one()
        return SprintProgress(
            total_stories=row[0],
            completed_stories=row[1],
            total_points=int(row[2]),
            completed_points=int(row[3]),
        )

    async def _return_stories_to_backlog(self, sprint_id: UUID, *, only_incomplete: bool) -> int:
        stmt = update(Story).where(Story.sprint_id == sprint_id).values(sprint_id=None)
        if only_incomplete:
            stmt = stmt.where(Story.status != StoryStatus.DONE)
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0
