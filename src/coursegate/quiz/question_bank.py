"""Built-in question bank used to author quiz blueprints.

Learn: Every blueprint is generated from this bank. The category
weights drive balanced selection when a session starts; the bank may
hold categories with no weight (e.g. "support"), which are only used to
fill the remainder of a session.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

BANK_VERSION = "builtin-1"

CATEGORY_WEIGHTS = (
    {"key": "knowledge", "count": 4},
    {"key": "insight", "count": 2},
    {"key": "behavior", "count": 2},
    {"key": "consistency", "count": 1},
    {"key": "planning", "count": 2},
)


@dataclass(frozen=True)
class BankQuestion:
    type: str
    category: str
    difficulty: int
    prompt: str
    choices: Optional[list[dict[str, str]]] = None
    correct: Optional[Any] = None
    rationales: Optional[dict[str, str]] = None
    rubric: Optional[dict[str, Any]] = field(default=None)


def _mcq(difficulty, prompt, choices, correct, rationales):
    return BankQuestion(
        type="mcq",
        category="knowledge",
        difficulty=difficulty,
        prompt=prompt,
        choices=[{"key": k, "text": t} for k, t in choices],
        correct=correct,
        rationales=rationales,
    )


def _free_text(type_, category, prompt, points, difficulty=2):
    return BankQuestion(
        type=type_,
        category=category,
        difficulty=difficulty,
        prompt=prompt,
        rubric={"points": [{"id": i, "desc": d} for i, d in points]},
    )


QUESTIONS: tuple[BankQuestion, ...] = (
    _mcq(
        1,
        "From which blood alcohol concentration is a car driver considered "
        "absolutely unfit to drive? (guide value)",
        [("A", "0.5‰"), ("B", "1.1‰"), ("C", "1.6‰"), ("D", "2.0‰")],
        "B",
        {
            "A": "That is the administrative offence limit.",
            "B": "Absolute unfitness for car drivers.",
            "C": "That is the limit for cyclists.",
            "D": "Too high.",
        },
    ),
    _mcq(
        1,
        "Which statement about separating cannabis use and driving is true?",
        [
            ("A", "You may always drive if you feel fit."),
            ("B", "It means reliably keeping consumption and driving apart."),
            ("C", "There are no limits or guide values."),
            ("D", "Using the evening before is never a problem."),
        ],
        "B",
        {
            "A": "Wrong, feeling fine is not enough.",
            "B": "This is the definition.",
            "C": "There is legal guidance.",
            "D": "It can be a problem.",
        },
    ),
    _mcq(
        2,
        "What can follow from 0.5‰ to 1.09‰ without signs of impairment?",
        [("A", "Criminal offence"), ("B", "Administrative offence"), ("C", "Nothing"), ("D", "A warning only")],
        "B",
        {
            "A": "Not necessarily a criminal offence.",
            "B": "Usually an administrative offence.",
            "C": "Wrong.",
            "D": "Does not apply.",
        },
    ),
    _mcq(
        1,
        "Which statement about penalty points is correct?",
        [
            ("A", "Points do not matter for the licence."),
            ("B", "8 points lead to the licence being revoked."),
            ("C", "From 2 points an assessment is always ordered."),
            ("D", "Points never expire."),
        ],
        "B",
        {
            "A": "Wrong.",
            "B": "Rule: 8 points means revocation.",
            "C": "Wrong.",
            "D": "Points are erased after a period.",
        },
    ),
    _mcq(
        1,
        "Which statement is correct? (cycling under the influence of alcohol)",
        [
            ("A", "Cycling is always allowed."),
            ("B", "From about 1.6‰ cyclists also face an assessment."),
            ("C", "There are no limits for bicycles."),
            ("D", "Only car limits are relevant."),
        ],
        "B",
        {"A": "Wrong.", "B": "Relevant guide value.", "C": "Wrong.", "D": "Wrong."},
    ),
    _free_text(
        "scenario",
        "insight",
        "In the interview you are asked about your insight. Outline what the "
        "mistake was and what you learned from it (bullet points).",
        [("insight", "Core insight named"), ("learning", "Concrete lessons")],
    ),
    _free_text(
        "short",
        "insight",
        "Why was your earlier behaviour a danger to traffic? Name two points.",
        [("danger", "Hazards named")],
    ),
    _free_text(
        "short",
        "behavior",
        "Name three measures you have taken to change your behaviour.",
        [("measures", "Concrete measures named")],
    ),
    _free_text(
        "short",
        "behavior",
        "How do you make sure you stay abstinent or keep consumption under "
        "control? (rules, routines, checks)",
        [("safeguards", "Plausible safeguards")],
    ),
    _free_text(
        "short",
        "consistency",
        "Give two examples showing that your current behaviour matches what you say.",
        [("coherence", "Actions and statements agree")],
    ),
    _free_text(
        "short",
        "planning",
        "Name two personal risk situations and one concrete strategy for each.",
        [("risks", "Situations named"), ("strategy", "Workable strategy")],
    ),
    _free_text(
        "scenario",
        "planning",
        "You are asked about relapse prevention. Outline your early warning system.",
        [("early_warning", "Warning signs and reaction")],
    ),
    _free_text(
        "short",
        "support",
        "Who supports you in everyday life (two examples) and how do you reach them?",
        [("network", "Named support")],
        difficulty=1,
    ),
)


def generate_blueprint(facts: dict) -> dict:
    """Return {categories, questions, meta} for a user's case facts.

    The bank does not depend on the facts yet; they are only recorded
    in the provenance metadata.
    """
    return {
        "categories": [dict(c) for c in CATEGORY_WEIGHTS],
        "questions": list(QUESTIONS),
        "meta": {
            "generator": BANK_VERSION,
            "fact_keys": sorted(facts.keys()),
        },
    }
