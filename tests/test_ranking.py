"""Tests for class position ranking."""

from decimal import Decimal

import pytest

from academic_records.core.exceptions import NotFoundError
from academic_records.schemas.exam_result import ResultIdentity, ScorePatch
from academic_records.services.ranking import RankingService, competition_ranks
from academic_records.services.score_merge import ScoreMergeStore


@pytest.fixture
def record(db, subjects, academic_session, first_term):
    """Merge scores for a student in a subject; returns the result."""
    store = ScoreMergeStore(db)

    def _record(student, subject_name, ca, theory, exam=None):
        fields = {"ca_score": Decimal(ca), "theory_score": Decimal(theory)}
        if exam is not None:
            fields["exam_score"] = Decimal(exam)
        identity = ResultIdentity(student.id, subjects[subject_name].id, academic_session.id, first_term.id)
        return store.merge(identity, ScorePatch(**fields)).result

    return _record


class TestCompetitionRanks:
    def test_ties_share_position_and_skip(self):
        assert competition_ranks([Decimal("90"), Decimal("90"), Decimal("85")]) == [1, 1, 3]

    def test_longer_tie_group(self):
        scores = [Decimal(s) for s in ("95", "90", "90", "90", "80")]
        assert competition_ranks(scores) == [1, 2, 2, 2, 5]

    def test_empty(self):
        assert competition_ranks([]) == []


class TestRecalculatePositions:
    def test_tied_totals(self, db, make_student, record, academic_session, first_term):
        a = record(make_student("JSS1/001"), "Mathematics", "30", "40", "20")
        b = record(make_student("JSS1/002"), "Mathematics", "30", "40", "20")
        c = record(make_student("JSS1/003"), "Mathematics", "30", "35", "20")

        summary = RankingService(db).recalculate_positions(academic_session.id, first_term.id)

        assert summary.subjects_processed == 1
        assert [a.position, b.position, c.position] == [1, 1, 3]
        assert {a.total_students, b.total_students, c.total_students} == {3}

    def test_incomplete_results_excluded(self, db, make_student, record, academic_session, first_term):
        top = record(make_student("JSS1/001"), "English", "25", "35", "25")
        low = record(make_student("JSS1/002"), "English", "10", "20", "10")
        pending = record(make_student("JSS1/003"), "English", "30", "40")

        summary = RankingService(db).recalculate_positions(academic_session.id, first_term.id)

        assert summary.results_ranked == 2
        assert summary.results_skipped == 1
        assert (top.position, low.position) == (1, 2)
        assert top.total_students == 2
        assert pending.position is None
        assert pending.total_students is None

        assert top.class_average == Decimal("62.50")
        assert top.highest_score == Decimal("85.0")
        assert low.lowest_score == Decimal("40.0")

    def test_row_turned_incomplete_loses_cohort_stats(self, db, make_student, record, academic_session, first_term):
        record(make_student("JSS1/001"), "English", "25", "35", "25")
        later = record(make_student("JSS1/002"), "English", "10", "20", "10")
        service = RankingService(db)
        service.recalculate_positions(academic_session.id, first_term.id)
        assert later.class_average == Decimal("62.50")

        later.exam_score = None
        later.total_score = None
        later.grade = None
        db.flush()
        service.recalculate_positions(academic_session.id, first_term.id)

        assert later.position is None
        assert later.total_students is None
        assert later.class_average is None
        assert later.highest_score is None
        assert later.lowest_score is None

    def test_idempotent(self, db, make_student, record, academic_session, first_term):
        results = [
            record(make_student(f"JSS1/00{i}"), "Physics", "20", str(20 + i), "20")
            for i in range(1, 5)
        ]
        service = RankingService(db)

        service.recalculate_positions(academic_session.id, first_term.id)
        first = [(r.position, r.total_students, r.class_average) for r in results]
        service.recalculate_positions(academic_session.id, first_term.id)

        assert [(r.position, r.total_students, r.class_average) for r in results] == first
        assert [r.position for r in results] == [4, 3, 2, 1]

    def test_classes_ranked_separately(self, db, make_student, record, academic_session, first_term, class_levels):
        jss1 = record(make_student("JSS1/001", class_name="JSS1"), "Biology", "20", "20", "20")
        jss2 = record(make_student("JSS2/001", class_name="JSS2"), "Biology", "10", "10", "10")
        record(make_student("JSS2/002", class_name="JSS2"), "Chemistry", "10", "10", "10")

        summary = RankingService(db).recalculate_positions(academic_session.id, first_term.id)
        assert summary.subjects_processed == 3
        assert (jss1.position, jss1.total_students) == (1, 1)
        assert (jss2.position, jss2.total_students) == (1, 1)

        summary = RankingService(db).recalculate_positions(
            academic_session.id, first_term.id, class_level_id=class_levels["JSS2"].id
        )
        assert summary.subjects_processed == 2

    def test_other_term_untouched(self, db, make_student, subjects, academic_session, terms):
        student = make_student("JSS1/001")
        identity = ResultIdentity(
            student.id, subjects["Mathematics"].id, academic_session.id, terms["Second Term"].id
        )
        result = ScoreMergeStore(db).merge(
            identity,
            ScorePatch(ca_score=Decimal("20"), theory_score=Decimal("20"), exam_score=Decimal("20")),
        ).result

        summary = RankingService(db).recalculate_positions(academic_session.id, terms["First Term"].id)
        assert summary.subjects_processed == 0
        assert result.position is None

    def test_unknown_class_level(self, db, academic_session, first_term):
        with pytest.raises(NotFoundError):
            RankingService(db).recalculate_positions(academic_session.id, first_term.id, class_level_id=999)
