"""Tests for question and choice randomization."""
import random

import pytest
from conftest import make_question
from dumpquiz.models import Choice, Question
from dumpquiz.services.scoring import is_correct
from dumpquiz.services.shuffle import shuffle_all_choices, shuffle_choices, shuffle_questions


def correct_texts(question):
    """Texts of the correct choices, independent of lettering."""
    by_letter = {c.letter: c.text for c in question.choices}
    return sorted(by_letter[a] for a in question.answer)


class TestShuffleQuestions:
    """Tests for question-order shuffling."""

    @pytest.mark.parametrize("size", [0, 1, 2, 10, 75])
    def test_is_permutation(self, size):
        """Test that the multiset of numbers is preserved for any size."""
        questions = [make_question(n) for n in range(1, size + 1)]
        result = shuffle_questions(questions, random.Random(size))
        assert sorted(q.number for q in result) == [q.number for q in questions]

    def test_input_not_mutated(self):
        """Test that the original sequence keeps its order."""
        questions = [make_question(n) for n in range(1, 20)]
        before = list(questions)
        shuffle_questions(questions, random.Random(1))
        assert questions == before

    def test_reproducible_with_seed(self):
        """Test that equal seeds give equal orders."""
        questions = [make_question(n) for n in range(1, 30)]
        first = shuffle_questions(questions, random.Random(42))
        second = shuffle_questions(questions, random.Random(42))
        assert first == second

    def test_every_order_reachable(self):
        """Test that all permutations of three questions occur."""
        questions = [make_question(n) for n in (1, 2, 3)]
        rng = random.Random(7)
        seen = {tuple(q.number for q in shuffle_questions(questions, rng)) for _ in range(300)}
        assert len(seen) == 6


class TestShuffleChoices:
    """Tests for choice-order shuffling and answer remapping."""

    def test_letters_are_positional(self):
        """Test that choices are relabelled A, B, C... in the new order."""
        q = make_question(1, letters="ABCDE")
        result = shuffle_choices(q, random.Random(3))
        assert [c.letter for c in result.choices] == ["A", "B", "C", "D", "E"]
        assert sorted(c.text for c in result.choices) == sorted(c.text for c in q.choices)

    @pytest.mark.parametrize("seed", range(10))
    def test_answer_follows_choice_text(self, seed):
        """Test that the correct choices keep being the correct ones."""
        q = make_question(1, answer=("B", "D"), letters="ABCDEF")
        result = shuffle_choices(q, random.Random(seed))
        assert correct_texts(result) == correct_texts(q)
        assert len(result.answer) == len(q.answer)
        assert set(result.answer) <= {c.letter for c in result.choices}

    @pytest.mark.parametrize("seed", range(5))
    def test_grading_preserved(self, seed):
        """Test that selecting the remapped correct letters is still correct."""
        q = make_question(1, answer=("C",))
        result = shuffle_choices(q, random.Random(seed))
        assert is_correct(result, result.answer)
        assert is_correct(q, q.answer)
        wrong = [c.letter for c in result.choices if c.letter not in result.answer][:1]
        assert not is_correct(result, wrong)

    def test_input_not_mutated(self):
        """Test that the original question is untouched."""
        q = make_question(1, answer=("A",))
        shuffle_choices(q, random.Random(5))
        assert q.answer == ("A",)
        assert q.choices[0] == Choice(letter="A", text="Option A of 1")

    def test_unmapped_answer_letter_passes_through(self):
        """Test that an answer letter without a choice is kept as is."""
        q = Question(
            number=9,
            text="Odd?",
            choices=(Choice("A", "x"), Choice("B", "y")),
            answer=("A", "F"),
        )
        result = shuffle_choices(q, random.Random(0))
        assert "F" in result.answer
        assert len(result.answer) == 2

    def test_other_fields_kept(self):
        """Test that number, text and explanation carry over."""
        q = make_question(4)
        result = shuffle_choices(q, random.Random(2))
        assert (result.number, result.text, result.explanation) == (q.number, q.text, q.explanation)

    def test_shuffle_all_choices(self):
        """Test that every question is shuffled and order is kept."""
        questions = [make_question(n, answer=("A",)) for n in range(1, 6)]
        result = shuffle_all_choices(questions, random.Random(11))
        assert [q.number for q in result] == [1, 2, 3, 4, 5]
        for original, shuffled in zip(questions, result):
            assert correct_texts(shuffled) == correct_texts(original)
