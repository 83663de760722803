"""Question and choice randomization.

Both transforms return new values and never mutate their input. Pass a
seeded ``random.Random`` as ``rng`` for reproducible orderings.
"""
import random
from typing import List, Optional, Sequence

from ..models import Choice, Question

CHOICE_LETTERS = "ABCDEF"


def shuffle_questions(questions: Sequence[Question], rng: Optional[random.Random] = None) -> List[Question]:
    """Return the questions in a uniformly random order."""
    rng = rng or random
    result = list(questions)
    rng.shuffle(result)
    return result


def shuffle_choices(question: Question, rng: Optional[random.Random] = None) -> Question:
    """Shuffle choices, relabel them A, B, C... and remap the answer key."""
    rng = rng or random
    shuffled = list(question.choices)
    rng.shuffle(shuffled)

    letter_map = {}
    new_choices = []
    for index, choice in enumerate(shuffled):
        new_letter = CHOICE_LETTERS[index]
        letter_map[choice.letter] = new_letter
        new_choices.append(Choice(letter=new_letter, text=choice.text))

    # Letters without a mapping pass through unchanged
    new_answer = [letter_map.get(a, a) for a in question.answer]

    return question.with_choices(new_choices, new_answer)


def shuffle_all_choices(questions: Sequence[Question], rng: Optional[random.Random] = None) -> List[Question]:
    """Shuffle the choices of every question independently."""
    return [shuffle_choices(q, rng) for q in questions]
