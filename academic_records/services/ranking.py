"""Ranking engine: class positions per subject cohort."""

import logging
from collections import defaultdict
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from academic_records.models.exam_result import ExamResult
from academic_records.schemas.exam_result import RankingSummary
from academic_records.services.directory import DirectoryService

logger = logging.getLogger(__name__)


def competition_ranks(scores: Sequence[Decimal]) -> list[int]:
    """Standard competition ranking for scores sorted in descending order.

    Tied scores share a position and the next distinct score skips ahead
    by the size of the tie group: 90, 90, 85 -> 1, 1, 3.
    """
    ranks: list[int] = []
    previous: Decimal | None = None
    position = 0
    for index, score in enumerate(scores):
        if score != previous:
            position = index + 1
            previous = score
        ranks.append(position)
    return ranks


class RankingService:
    """Recomputes positions and cohort statistics for ExamResults."""

    def __init__(self, db: Session):
        self.db = db

    def recalculate_positions(
        self,
        session_id: int,
        term_id: int,
        class_level_id: int | None = None,
    ) -> RankingSummary:
        """
        Rank every subject cohort in the session/term.

        A cohort is the set of results sharing subject, session, term and
        class. Only complete results are ranked; incomplete ones have their
        position cleared. Rows are read FOR UPDATE so that merges into the
        cohort wait until this pass is committed.
        """
        directory = DirectoryService(self.db)
        directory.get_term_in_session(session_id, term_id)
        if class_level_id is not None:
            directory.get_class_level(class_level_id)

        query = select(ExamResult).where(
            ExamResult.session_id == session_id,
            ExamResult.term_id == term_id,
        )
        if class_level_id is not None:
            query = query.where(ExamResult.class_level_id == class_level_id)
        query = query.order_by(ExamResult.id).with_for_update()

        rows = self.db.execute(query).scalars().all()

        cohorts: dict[tuple[int | None, int], list[ExamResult]] = defaultdict(list)
        for row in rows:
            cohorts[(row.class_level_id, row.subject_id)].append(row)

        subjects_processed = 0
        ranked = 0
        skipped = 0
        for (cohort_class, subject_id), members in sorted(
            cohorts.items(), key=lambda item: (item[0][0] or 0, item[0][1])
        ):
            complete = [r for r in members if r.is_complete and r.total_score is not None]
            for result in members:
                if not (result.is_complete and result.total_score is not None):
                    result.position = None
                    result.total_students = None
                    result.class_average = None
                    result.highest_score = None
                    result.lowest_score = None
                    skipped += 1

            if not complete:
                continue

            # Highest total first; id keeps the order of equal totals stable
            complete.sort(key=lambda r: (-r.total_score, r.id))
            scores = [r.total_score for r in complete]
            positions = competition_ranks(scores)

            average = (sum(scores, Decimal("0")) / len(scores)).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
            highest = max(scores)
            lowest = min(scores)

            for result, position in zip(complete, positions):
                result.position = position
                result.total_students = len(complete)
                result.class_average = average
                result.highest_score = highest
                result.lowest_score = lowest

            ranked += len(complete)
            subjects_processed += 1
            logger.debug(
                f"[RANKING] class={cohort_class} subject={subject_id}: "
                f"{len(complete)} ranked, average={average}"
            )

        self.db.flush()

        logger.info(
            f"[RANKING] session={session_id} term={term_id} class={class_level_id}: "
            f"{subjects_processed} subjects processed, {ranked} ranked, {skipped} incomplete"
        )
        return RankingSummary(
            subjects_processed=subjects_processed,
            results_ranked=ranked,
            results_skipped=skipped,
        )
