from collections.abc import Iterable
from dataclasses import dataclass


# (minimum percentage, letter), highest first.
EXAM_GRADE_SCALE = ((70, "A"), (60, "B"), (50, "C"), (40, "D"))
RESULT_GRADE_SCALE = ((75, "A"), (65, "B"), (50, "C"), (45, "D"))

ATTENDED_STATUSES = {"Present", "Late"}


def calculate_grade(percentage: float, scale=EXAM_GRADE_SCALE) -> str:
    for minimum, letter in scale:
        if percentage >= minimum:
            return letter
    return "F"


def result_grade(score: float) -> str:
    return calculate_grade(score, RESULT_GRADE_SCALE)


def percentage(score: float, total: float) -> float:
    if not total:
        return 0.0
    return round(score / total * 100, 2)


@dataclass(frozen=True)
class AnswerKey:
    answer_id: str
    selected: str | None
    correct: str
    marks: int


@dataclass(frozen=True)
class GradedAnswer:
    answer_id: str
    is_correct: bool
    marks_awarded: int


def auto_grade(answers: Iterable[AnswerKey]) -> tuple[list[GradedAnswer], int]:
    graded = []
    total = 0
    for answer in answers:
        is_correct = answer.selected is not None and answer.selected == answer.correct
        awarded = answer.marks if is_correct else 0
        total += awarded
        graded.append(GradedAnswer(answer_id=answer.answer_id, is_correct=is_correct, marks_awarded=awarded))
    return graded, total


def attendance_rate(statuses: Iterable[str]) -> tuple[int, int, float]:
    """Return (total, attended, percentage) where Late counts as attended."""
    statuses = list(statuses)
    attended = sum(1 for value in statuses if value in ATTENDED_STATUSES)
    return len(statuses), attended, percentage(attended, len(statuses))
