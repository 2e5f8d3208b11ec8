"""Intake merging, blueprint hashing, question selection and scoring."""

import hashlib
import json
import math
import random
import re
from datetime import datetime
from typing import Any, Optional, Sequence

from coursegate.db.models import QuizQuestion

_MISSING = object()

MAX_SESSION_QUESTIONS = 20
DEFAULT_SESSION_QUESTIONS = 10


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


# ─── Intake ──────────────────────────────────────────────


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def merge_intake(old: Any, new: Any, ts: str) -> Any:
    """Deep-merge intake answers; every leaf is stored as {value, ts}.

    - keys absent from `new` keep their old entry
    - explicit None becomes {"value": None, "ts": ts}
    - scalars and lists become leaves; an unchanged value keeps its old ts
    - dicts are merged key by key
    """
    if new is _MISSING:
        return old
    if new is None:
        return {"value": None, "ts": ts}
    if not isinstance(new, dict):
        if (
            isinstance(old, dict)
            and "value" in old
            and _canonical(old["value"]) == _canonical(new)
        ):
            return old
        return {"value": new, "ts": ts}

    out = dict(old) if isinstance(old, dict) else {}
    for key, value in new.items():
        previous = old.get(key, _MISSING) if isinstance(old, dict) else _MISSING
        out[key] = merge_intake(None if previous is _MISSING else previous, value, ts)
    return out


def intake_timestamp(now: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a trailing Z."""
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


# ─── Blueprint source hash ───────────────────────────────


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def blueprint_source_hash(document_text: str, intake_responses: dict) -> Optional[str]:
    """Hash both blueprint sources, or None when neither has content.

    hash = sha256("<sha256(doc) or ''>|<sha256(intake json) or ''>")
    """
    document_text = (document_text or "").strip()
    has_doc = bool(document_text)
    has_intake = bool(intake_responses)
    if not has_doc and not has_intake:
        return None
    doc_hash = sha256_hex(document_text) if has_doc else ""
    intake_hash = sha256_hex(_canonical(intake_responses)) if has_intake else ""
    return sha256_hex(f"{doc_hash}|{intake_hash}")


# ─── Session selection ───────────────────────────────────


def clamp_count(count: Any) -> int:
    try:
        value = int(count)
    except (TypeError, ValueError):
        return DEFAULT_SESSION_QUESTIONS
    if value == 0:
        return DEFAULT_SESSION_QUESTIONS
    return max(1, min(MAX_SESSION_QUESTIONS, value))


def select_questions(
    questions: Sequence[QuizQuestion],
    categories: Sequence[dict],
    count: int,
    rng: Optional[random.Random] = None,
) -> list[QuizQuestion]:
    """Pick `count` questions balanced by the blueprint's category weights.

    Each weighted category first contributes up to
    max(1, round(count * weight / total_weight)) shuffled questions (in
    blueprint order, stopping at `count`); the rest is filled at random
    from everything not yet picked.
    """
    rng = rng or random.Random()
    by_category: dict[str, list[QuizQuestion]] = {}
    for question in questions:
        by_category.setdefault(question.category, []).append(question)
    for pool in by_category.values():
        rng.shuffle(pool)

    total_weight = sum(c.get("count") or 0 for c in categories) or 1
    selection: list[QuizQuestion] = []
    for category in categories:
        weight = category.get("count") or 1
        target = max(1, round_half_up(count * weight / total_weight))
        pool = by_category.get(category.get("key"), [])
        while target > 0 and pool and len(selection) < count:
            selection.append(pool.pop(0))
            target -= 1

    if len(selection) < count:
        picked = {q.id for q in selection}
        remainder = [q for q in questions if q.id not in picked]
        rng.shuffle(remainder)
        selection.extend(remainder[: count - len(selection)])
    return selection[:count]


# ─── Scoring ─────────────────────────────────────────────


def _as_answer_set(value: Any) -> set[str]:
    if isinstance(value, (list, tuple)):
        return {str(v) for v in value}
    if value is None:
        return set()
    return {str(value)}


def mcq_is_correct(submitted: Any, correct: Any) -> bool:
    """Exact set equality between submitted and correct choice keys."""
    return _as_answer_set(submitted) == _as_answer_set(correct)


def score_results(
    results: Sequence[tuple[str, str, Optional[bool]]],
) -> tuple[int, dict[str, int]]:
    """Overall and per-category percentage over MCQ results.

    `results` holds (question type, category, is_correct) triples.
    Free-text answers are not scored.
    """
    correct = 0
    total = 0
    per_category: dict[str, list[int]] = {}
    for qtype, category, is_correct in results:
        if qtype != "mcq":
            continue
        total += 1
        tally = per_category.setdefault(category, [0, 0])
        tally[1] += 1
        if is_correct:
            correct += 1
            tally[0] += 1

    score = round_half_up(correct / total * 100) if total else 0
    competencies = {
        key: round_half_up(hits / seen * 100) if seen else 0
        for key, (hits, seen) in per_category.items()
    }
    return score, competencies


# ─── Case profile ────────────────────────────────────────

_RISK_PATTERNS = (
    ("alcohol_case", re.compile(r"alkohol|alcohol|promill|bak|‰")),
    ("cannabis_case", re.compile(r"cannabis|thc|trennungsvermögen|joint")),
    ("points_case", re.compile(r"punkte|flensburg|penalty points")),
)
_REFERENCE_BAC = re.compile(r"1,1‰|1\.1‰")

SUMMARY_LIMIT = 2000


def normalize_facts(extracted_text: str) -> tuple[dict, list[str]]:
    """Derive case facts and risk flags from extracted document text."""
    extracted_text = extracted_text or ""
    text = extracted_text.lower()
    risk_flags = [flag for flag, pattern in _RISK_PATTERNS if pattern.search(text)]
    hints = {}
    if _REFERENCE_BAC.search(text):
        hints["reference_bac_1_1"] = True
    return {"summary": extracted_text[:SUMMARY_LIMIT], "hints": hints}, risk_flags
