"""Tests for working sets, progress and grading of quiz passes."""
import random

import pytest
from conftest import make_question
from dumpquiz.models import Choice
from dumpquiz.services.session_service import (
    QuizSettings,
    SessionService,
    build_working_set,
    clean_answers,
)

OWNER = "owner-1"


@pytest.fixture
def questions():
    return [make_question(n, answer=("B",)) for n in range(1, 11)]


@pytest.fixture
def service(store, questions):
    service = SessionService(store, OWNER, rng=random.Random(3))
    service.quiz_id = store.save_quiz(OWNER, "Practice", questions).quiz_id
    return service


class TestBuildWorkingSet:
    """Tests for the settings pipeline."""

    def test_defaults_keep_order(self, questions):
        """Test that no settings means the canonical sequence."""
        assert build_working_set(questions, QuizSettings()) == questions

    def test_exclude_known(self, questions):
        """Test that known questions are removed only when asked."""
        settings = QuizSettings(exclude_known=True)
        working = build_working_set(questions, settings, known_questions=[2, 5])
        assert [q.number for q in working] == [1, 3, 4, 6, 7, 8, 9, 10]
        assert build_working_set(questions, QuizSettings(), known_questions=[2, 5]) == questions

    def test_shuffle_both(self, questions):
        """Test that shuffling keeps every question and its correct text."""
        settings = QuizSettings(shuffle_questions=True, shuffle_choices=True)
        working = build_working_set(questions, settings, rng=random.Random(8))
        assert sorted(q.number for q in working) == list(range(1, 11))
        for q in working:
            correct = [c.text for c in q.choices if c.letter in q.answer]
            assert correct == [f"Option B of {q.number}"]

    def test_all_known_gives_empty_set(self, questions):
        """Test that excluding every question leaves nothing."""
        settings = QuizSettings(exclude_known=True)
        assert build_working_set(questions, settings, known_questions=range(1, 11)) == []


class TestCleanAnswers:
    """Tests for answer normalization."""

    def test_uppercase_dedupe_and_drop_empty(self):
        """Test letter normalization and removal of empty selections."""
        assert clean_answers({1: ["a", "A", "c"], 2: [], "3": ["d"]}) == {1: ["A", "C"], 3: ["D"]}


class TestSessionFlow:
    """Tests for start, progress, finish and retry."""

    def test_start_resets_progress(self, service):
        """Test that start saves a fresh record at index zero."""
        service.save_progress(service.quiz_id, 4, {1: ["B"]})
        working, record = service.start(service.quiz_id, QuizSettings())

        assert len(working) == 10
        assert record.current_index == 0
        assert record.user_answers == {}
        assert record.started_at is not None
        assert service.get_progress(service.quiz_id) == record

    def test_start_unknown_quiz(self, service):
        """Test that starting an unknown quiz raises LookupError."""
        with pytest.raises(LookupError):
            service.start("missing-1", QuizSettings())

    def test_start_with_everything_known(self, service):
        """Test that an empty working set is refused."""
        for n in range(1, 11):
            service.toggle_known(service.quiz_id, n)
        with pytest.raises(ValueError, match="No questions left"):
            service.start(service.quiz_id, QuizSettings(exclude_known=True))

    def test_start_keeps_known_questions(self, service):
        """Test that known flags survive a new start."""
        service.toggle_known(service.quiz_id, 7)
        _, record = service.start(service.quiz_id, QuizSettings())
        assert record.known_questions == [7]

    def test_save_progress_round_trip(self, service):
        """Test that saved answers come back as saved."""
        service.save_progress(service.quiz_id, 2, {1: ["b"], 2: ["A", "C"]}, started_at=123)
        record = service.get_progress(service.quiz_id)
        assert record.current_index == 2
        assert record.user_answers == {1: ["B"], 2: ["A", "C"]}
        assert record.started_at == 123

    def test_save_progress_negative_index(self, service):
        """Test that a negative position is refused."""
        with pytest.raises(ValueError):
            service.save_progress(service.quiz_id, -1, {})

    def test_save_progress_keeps_known_when_omitted(self, service):
        """Test that known flags are preserved unless replaced."""
        service.toggle_known(service.quiz_id, 3)
        service.save_progress(service.quiz_id, 1, {})
        assert service.known_questions(service.quiz_id) == [3]
        service.save_progress(service.quiz_id, 1, {}, known_questions=[])
        assert service.known_questions(service.quiz_id) == []

    def test_toggle_known(self, service):
        """Test that toggling twice restores the original state."""
        assert service.toggle_known(service.quiz_id, 5).known_questions == [5]
        assert service.toggle_known(service.quiz_id, 5).known_questions == []

    def test_resume_unfinished(self, service):
        """Test that unfinished progress is offered for resuming."""
        service.save_progress(service.quiz_id, 6, {1: ["B"]}, started_at=55)
        questions, progress = service.resume(service.quiz_id)
        assert [q.number for q in questions] == list(range(1, 11))
        assert progress.current_index == 6
        assert progress.started_at == 55

    def test_resume_fills_missing_start_time(self, service):
        """Test that a record without start time gets one on resume."""
        service.save_progress(service.quiz_id, 1, {})
        _, progress = service.resume(service.quiz_id)
        assert progress.started_at is not None

    def test_resume_without_progress(self, service):
        """Test that nothing is resumable before the first save."""
        _, progress = service.resume(service.quiz_id)
        assert progress is None

    def test_finish_scores_and_completes(self, service, questions):
        """Test that finishing grades the working set and marks completion."""
        service.start(service.quiz_id, QuizSettings())
        answers = {n: ["B"] for n in range(1, 8)}
        answers[8] = ["A"]

        result, record = service.finish(service.quiz_id, questions, answers)

        assert result.correct_count == 7
        assert result.score == 70
        assert [q.number for q in result.wrong_questions] == [8, 9, 10]
        assert record.is_completed
        assert record.score == 70
        assert record.started_at is not None

        _, progress = service.resume(service.quiz_id)
        assert progress is None

    def test_finish_grades_shuffled_choices(self, service):
        """Test that grading uses the letters of the presented working set."""
        working, _ = service.start(service.quiz_id, QuizSettings(shuffle_choices=True))
        answers = {q.number: list(q.answer) for q in working}
        result, _ = service.finish(service.quiz_id, working, answers)
        assert result.score == 100

    def test_finish_ignores_submitted_answer_key(self, service, questions):
        """Test that grading uses the stored key, not the one sent back."""
        forged = [q.with_choices(list(q.choices), ["A"]) for q in questions[:2]]
        answers = {1: ["A"], 2: ["A"]}

        result, record = service.finish(service.quiz_id, forged, answers)

        assert result.score == 0
        assert record.score == 0
        assert [q.answer for q in result.wrong_questions] == [("B",), ("B",)]

    def test_finish_rejects_unknown_question(self, service, questions):
        """Test that a question missing from the stored quiz is refused."""
        working = [questions[0], make_question(999)]
        with pytest.raises(ValueError, match="999"):
            service.finish(service.quiz_id, working, {1: ["B"], 999: ["A"]})
        assert service.get_progress(service.quiz_id) is None

    def test_finish_rejects_altered_choices(self, service, questions):
        """Test that choices differing from the stored question are refused."""
        q = questions[0]
        altered = q.with_choices([Choice(c.letter, "Made up") for c in q.choices], list(q.answer))
        with pytest.raises(ValueError):
            service.finish(service.quiz_id, [altered], {1: ["B"]})

    def test_retry_wrong_ignores_submitted_answer_key(self, service, questions):
        """Test that the wrong subset is decided by the stored key."""
        forged = [q.with_choices(list(q.choices), ["C"]) for q in questions[:3]]
        wrong = service.retry_wrong(service.quiz_id, forged, {1: ["C"], 2: ["B"], 3: ["C"]})
        assert [q.number for q in wrong] == [1, 3]

    def test_finish_empty_working_set(self, service):
        """Test that there is nothing to grade without questions."""
        with pytest.raises(ValueError):
            service.finish(service.quiz_id, [], {})

    def test_retry_clears_progress(self, service):
        """Test that retry discards the saved record."""
        service.save_progress(service.quiz_id, 3, {1: ["B"]})
        service.retry(service.quiz_id)
        assert service.get_progress(service.quiz_id) is None

    def test_retry_wrong(self, service, questions):
        """Test that only wrong or unanswered questions are replayed."""
        answers = {n: ["B"] for n in range(1, 10)}
        answers[4] = ["C"]
        wrong = service.retry_wrong(service.quiz_id, questions, answers)
        assert [q.number for q in wrong] == [4, 10]

    def test_retry_wrong_when_all_correct(self, service, questions):
        """Test that a perfect pass has nothing to retry."""
        answers = {n: ["B"] for n in range(1, 11)}
        with pytest.raises(ValueError, match="No wrong answers"):
            service.retry_wrong(service.quiz_id, questions, answers)
