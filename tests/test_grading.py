import pytest

from portal.grading import (
    AnswerKey,
    attendance_rate,
    auto_grade,
    calculate_grade,
    percentage,
    result_grade,
)


@pytest.mark.parametrize(
    "score, letter",
    [(100, "A"), (70, "A"), (69.99, "B"), (60, "B"), (50, "C"), (40, "D"), (39.5, "F"), (0, "F")],
)
def test_calculate_grade_uses_exam_scale(score, letter):
    assert calculate_grade(score) == letter


@pytest.mark.parametrize("score, letter", [(75, "A"), (74, "B"), (65, "B"), (50, "C"), (45, "D"), (44, "F")])
def test_result_grade_uses_term_scale(score, letter):
    assert result_grade(score) == letter


def test_percentage_rounds_and_handles_zero_total():
    assert percentage(1, 3) == 33.33
    assert percentage(5, 0) == 0.0


def test_auto_grade_awards_marks_only_for_exact_matches():
    graded, total = auto_grade(
        [
            AnswerKey(answer_id="a1", selected="B", correct="B", marks=2),
            AnswerKey(answer_id="a2", selected="c", correct="C", marks=3),
            AnswerKey(answer_id="a3", selected=None, correct="A", marks=1),
        ]
    )
    assert total == 2
    assert [item.is_correct for item in graded] == [True, False, False]
    assert [item.marks_awarded for item in graded] == [2, 0, 0]


def test_auto_grade_empty():
    assert auto_grade([]) == ([], 0)


def test_attendance_rate_counts_late_as_attended():
    total, attended, rate = attendance_rate(["Present", "Late", "Absent", "Excused"])
    assert (total, attended, rate) == (4, 2, 50.0)
    assert attendance_rate([]) == (0, 0, 0.0)
