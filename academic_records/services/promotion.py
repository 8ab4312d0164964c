"""Promotion evaluation and application."""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from academic_records.core.exceptions import NoRuleSetError, ValidationError
from academic_records.models.exam_result import ExamResult
from academic_records.models.student import Student
from academic_records.schemas.promotion import (
    GRADUATED,
    PromotionApplyResult,
    PromotionDecision,
    PromotionEvaluation,
    PromotionRuleSet,
    PromotionStatus,
    SubjectOutcome,
)
from academic_records.services.directory import DirectoryService
from academic_records.services.grading import round_score

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def subject_scores(results: Iterable[ExamResult]) -> dict[str, Decimal]:
    """Score per subject from complete results.

    With several terms in scope a subject's score is the mean of its
    complete term totals. Incomplete results are ignored.
    """
    totals: dict[str, list[Decimal]] = defaultdict(list)
    for result in results:
        if result.is_complete and result.total_score is not None:
            totals[result.subject.name].append(Decimal(result.total_score))
    return {
        subject: round_score(sum(values, Decimal("0")) / len(values))
        for subject, values in totals.items()
    }


def evaluate_student(
    student: Student,
    scores: Mapping[str, Decimal],
    rules: PromotionRuleSet,
) -> PromotionDecision:
    """Classify one student from their subject scores. Pure function."""
    base = {
        "student_id": student.id,
        "admission_number": student.admission_number,
        "student_name": student.full_name,
        "subjects_required": rules.total_minimum,
    }

    if not scores:
        return PromotionDecision(
            **base,
            cumulative_average=None,
            subjects_passed=0,
            status=PromotionStatus.NO_DATA,
            missing_compulsory=sorted(rules.compulsory_subjects),
            remarks="No complete results for this period; manual review required",
        )

    outcomes = [
        SubjectOutcome(
            subject=subject,
            score=score,
            passed=score >= rules.pass_mark,
            compulsory=subject in rules.compulsory_subjects,
        )
        for subject, score in sorted(scores.items())
    ]
    average = (sum(scores.values(), Decimal("0")) / len(scores)).quantize(
        TWO_PLACES, rounding=ROUND_HALF_UP
    )

    electives = [o for o in outcomes if not o.compulsory]
    passed = sum(1 for o in electives if o.passed)
    compulsory_failed = [o.subject for o in outcomes if o.compulsory and not o.passed]
    missing_compulsory = sorted(rules.compulsory_subjects - scores.keys())
    # Closest to the pass mark first
    failed_electives = sorted(
        (o for o in electives if not o.passed),
        key=lambda o: (-o.score, o.subject),
    )

    decision = {
        **base,
        "cumulative_average": average,
        "subjects_passed": passed,
        "compulsory_failed": compulsory_failed,
        "missing_compulsory": missing_compulsory,
        "subjects": outcomes,
    }

    if compulsory_failed:
        return PromotionDecision(
            **decision,
            status=PromotionStatus.NOT_PROMOTED,
            remarks=f"Failed compulsory subject(s): {', '.join(compulsory_failed)}",
        )

    if missing_compulsory:
        return PromotionDecision(
            **decision,
            status=PromotionStatus.NO_DATA,
            remarks=(
                f"Missing results for compulsory subject(s): {', '.join(missing_compulsory)}; "
                "manual review required"
            ),
        )

    if passed >= rules.minimum_additional:
        return PromotionDecision(
            **decision,
            status=PromotionStatus.PROMOTED,
            remarks=f"Passed all compulsory subjects and {passed} other subject(s)",
        )

    shortfall = rules.minimum_additional - passed
    if (
        rules.allow_carryover
        and shortfall <= rules.max_carryover
        and len(failed_electives) >= shortfall
    ):
        carryover = [o.subject for o in failed_electives[:shortfall]]
        return PromotionDecision(
            **decision,
            status=PromotionStatus.PROMOTED_WITH_CARRYOVER,
            carryover_subjects=carryover,
            remarks=f"Promoted with carryover in {', '.join(carryover)}",
        )

    if not rules.allow_carryover:
        reason = "carryover not allowed"
    elif shortfall > rules.max_carryover:
        reason = f"shortfall of {shortfall} exceeds carryover limit of {rules.max_carryover}"
    else:
        reason = "not enough subjects taken"
    return PromotionDecision(
        **decision,
        status=PromotionStatus.NOT_PROMOTED,
        remarks=(
            f"Passed {passed} of {rules.minimum_additional} required additional subjects; {reason}"
        ),
    )


class PromotionService:
    """Evaluates promotion rules and applies class changes."""

    def __init__(self, db: Session):
        self.db = db
        self.directory = DirectoryService(db)

    def evaluate(
        self,
        class_level_id: int,
        session_id: int,
        rules: PromotionRuleSet | None,
        term_id: int | None = None,
    ) -> list[PromotionDecision]:
        """Decision for every active student in the class. Read-only."""
        if rules is None:
            raise NoRuleSetError()

        class_level = self.directory.get_class_level(class_level_id)
        if term_id is not None:
            self.directory.get_term_in_session(session_id, term_id)
        else:
            self.directory.get_session(session_id)

        students = self.directory.list_active_students(class_level_id)
        results_by_student: dict[int, list[ExamResult]] = defaultdict(list)
        if students:
            query = select(ExamResult).where(
                ExamResult.student_id.in_([s.id for s in students]),
                ExamResult.session_id == session_id,
            )
            if term_id is not None:
                query = query.where(ExamResult.term_id == term_id)
            for result in self.db.execute(query).scalars().all():
                results_by_student[result.student_id].append(result)

        decisions = [
            evaluate_student(student, subject_scores(results_by_student[student.id]), rules)
            for student in students
        ]

        logger.info(
            f"[PROMOTION] Evaluated {len(decisions)} students in {class_level.name} "
            f"session={session_id} term={term_id} mode={rules.mode}"
        )
        return decisions

    def evaluate_class(
        self,
        class_level_id: int,
        session_id: int,
        rules: PromotionRuleSet | None,
        term_id: int | None = None,
    ) -> PromotionEvaluation:
        """Evaluate and attach per-status counts and the auto-apply list."""
        decisions = self.evaluate(class_level_id, session_id, rules, term_id)
        counts = {status: 0 for status in PromotionStatus}
        for decision in decisions:
            counts[decision.status] += 1

        auto_apply = []
        if not rules.is_advisory:
            auto_apply = [
                d.student_id
                for d in decisions
                if d.status in (PromotionStatus.PROMOTED, PromotionStatus.PROMOTED_WITH_CARRYOVER)
            ]

        return PromotionEvaluation(
            class_level_id=class_level_id,
            session_id=session_id,
            term_id=term_id,
            mode=rules.mode,
            advisory=rules.is_advisory,
            decisions=decisions,
            counts=counts,
            auto_apply_student_ids=auto_apply,
        )

    def apply_promotion(
        self,
        student_ids: list[int],
        from_class: str,
        to_class: str,
        session_id: int,
    ) -> PromotionApplyResult:
        """
        Move the selected students from one class to the next.

        Only the sequential mapping is accepted. The evaluator's decision
        is not re-checked. Students that cannot be moved are reported in
        ``failed_ids``; the rest are applied inside one savepoint, so a
        database error rolls back the whole call.
        """
        from_class = from_class.upper()
        to_class = to_class.upper()
        expected = self.directory.next_class_name(from_class)
        if expected is None or expected != to_class:
            raise ValidationError(
                f"Cannot promote from {from_class} to {to_class}",
                details={"from_class": from_class, "to_class": to_class, "expected": expected},
            )

        self.directory.get_session(session_id)
        source = self.directory.get_class_level_by_name(from_class)
        if source is None:
            raise ValidationError(f"Class level {from_class} is not set up")
        target = None
        if to_class != GRADUATED:
            target = self.directory.get_class_level_by_name(to_class)
            if target is None:
                raise ValidationError(f"Class level {to_class} is not set up")

        unique_ids = list(dict.fromkeys(student_ids))
        students = {
            s.id: s
            for s in self.db.execute(
                select(Student).where(Student.id.in_(unique_ids)).with_for_update()
            ).scalars().all()
        }

        promoted_ids: list[int] = []
        failures: dict[int, str] = {}
        graduated = 0

        with self.db.begin_nested():
            for student_id in unique_ids:
                student = students.get(student_id)
                if student is None:
                    failures[student_id] = "Student not found"
                    continue

                if self._already_applied(student, target, session_id):
                    promoted_ids.append(student_id)
                    if target is None:
                        graduated += 1
                    continue

                if not student.is_active:
                    failures[student_id] = "Student is inactive"
                    continue
                if student.class_level_id != source.id:
                    failures[student_id] = f"Student is not in {from_class}"
                    continue

                if target is None:
                    student.is_graduated = True
                    student.is_active = False
                    graduated += 1
                else:
                    student.class_level_id = target.id
                student.enrollment_session_id = session_id
                promoted_ids.append(student_id)

            self.db.flush()

        for student_id, reason in failures.items():
            logger.warning(f"[PROMOTION] Student {student_id} not moved: {reason}")
        logger.info(
            f"[PROMOTION] {from_class} -> {to_class}: {len(promoted_ids)} moved "
            f"({graduated} graduated), {len(failures)} failed"
        )

        return PromotionApplyResult(
            promoted=len(promoted_ids) - graduated,
            graduated=graduated,
            promoted_ids=promoted_ids,
            failed_ids=list(failures),
            failures=failures,
        )

    @staticmethod
    def _already_applied(student: Student, target, session_id: int) -> bool:
        """A repeated call finds the student already moved for this session."""
        if student.enrollment_session_id != session_id:
            return False
        if target is None:
            return student.is_graduated
        return student.is_active and student.class_level_id == target.id
