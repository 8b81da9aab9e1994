# exams.py
"""Exam/question validation and bulk import, shared by the exam editor and the CLI."""
import importlib.util
import json
import pathlib
import string

from models import db, Exam, ExamQuestion

LETTERS = string.ascii_uppercase
MIN_OPTIONS = 2
MAX_OPTIONS = 6
TF_OPTIONS = ["True", "False"]


class ExamValidationError(ValueError):
    pass


def option_letter(idx: int) -> str:
    return LETTERS[idx]


def clean_question(text, options, correct, qtype="MCQ"):
    """
    Validate one question as typed in the editor and return the stored shape.

    `correct` indexes the raw `options` list (blanks included); it is remapped
    onto the list with blanks dropped.
    """
    text = (text or "").strip()
    if not text:
        raise ExamValidationError("Please write the question text first.")

    qtype = (qtype or "MCQ").strip().upper()
    if qtype not in ("MCQ", "TF"):
        raise ExamValidationError("Unknown question type.")

    try:
        correct = int(correct)
    except (TypeError, ValueError):
        raise ExamValidationError("Pick the correct answer.")

    if qtype == "TF":
        if correct not in (0, 1):
            raise ExamValidationError("Pick True or False as the correct answer.")
        return {"text": text, "options": list(TF_OPTIONS), "correct_answer": correct, "type": "TF"}

    raw = [(o or "").strip() for o in (options or [])]
    filled = [o for o in raw if o]
    if len(filled) < MIN_OPTIONS:
        raise ExamValidationError("Please write at least two options for the question.")
    if len(filled) > MAX_OPTIONS:
        raise ExamValidationError(f"A question can have at most {MAX_OPTIONS} options.")
    if not 0 <= correct < len(raw) or not raw[correct]:
        raise ExamValidationError("The correct answer must be one of the filled options.")

    return {
        "text": text,
        "options": filled,
        "correct_answer": sum(1 for o in raw[:correct] if o),
        "type": "MCQ",
    }


def create_exam(group, creator, title, questions, description=None) -> Exam:
    """Add an exam with already-cleaned questions to the session (caller commits)."""
    title = (title or "").strip()
    if not title:
        raise ExamValidationError("Please enter a title for the exam.")
    if not questions:
        raise ExamValidationError("Add at least one question.")

    exam = Exam(
        group_id=group.id,
        title=title,
        description=(description or "").strip() or None,
        creator_id=getattr(creator, "id", None),
    )
    for pos, q in enumerate(questions):
        exam.questions.append(ExamQuestion(
            position=pos,
            text=q["text"],
            options=list(q["options"]),
            correct_answer=q["correct_answer"],
            type=q.get("type", "MCQ"),
        ))
    db.session.add(exam)
    return exam


def _norm(s: str) -> str:
    # collapse whitespace + lowercase for robust matching
    return " ".join(s.split()).lower()


def _resolve_correct(corr, choices):
    if isinstance(corr, bool):
        return None
    if isinstance(corr, int):
        return corr if 0 <= corr < len(choices) else None
    if isinstance(corr, str):
        s = corr.strip()
        if len(s) == 1 and s.upper() in LETTERS[:len(choices)]:
            return LETTERS.index(s.upper())
        if s.isdigit() and int(s) < len(choices):
            return int(s)
        target = _norm(s)
        for i, opt in enumerate(choices):
            if _norm(opt) == target:
                return i
    return None


def normalize_item(item):
    """
    Accept common question shapes and return the stored shape, or None:
      {text|question, options|choices|a..f|choice_a..choice_f, correct_answer|correct|answer, type?}
    The correct answer may be an index, a letter, a numeric string or the option text.
    """
    if not isinstance(item, dict):
        return None
    text = (item.get("text") or item.get("question") or "").strip()
    if not text:
        return None

    qtype = (item.get("type") or "MCQ").strip().upper()
    if qtype == "TF":
        choices = list(TF_OPTIONS)
    elif isinstance(item.get("options"), list):
        choices = item["options"]
    elif isinstance(item.get("choices"), list):
        choices = item["choices"]
    else:
        choices = []
        for letter in "abcdef":
            val = item.get(f"choice_{letter}", item.get(letter))
            if val is None:
                break
            choices.append(val)
    choices = [str(c).strip() for c in choices if str(c).strip()]

    corr = item.get("correct_answer")
    if corr is None:
        corr = item.get("correct", item.get("answer"))
    if qtype == "TF" and isinstance(corr, bool):
        corr = 0 if corr else 1
    idx = _resolve_correct(corr, choices)
    if idx is None:
        return None

    try:
        return clean_question(text, choices, idx, qtype)
    except ExamValidationError:
        return None


def iter_exams_from_path(path: str):
    p = pathlib.Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    if p.suffix.lower() == ".py":
        # import module and read a top-level `exams`
        spec = importlib.util.spec_from_file_location("exams_mod", str(p))
        mod = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(mod)  # type: ignore
        data = getattr(mod, "exams", None)
        if not isinstance(data, (list, tuple)):
            raise ValueError("Python exam files must define a top-level list named `exams`")
        return list(data)
    with p.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict) and isinstance(data.get("exams"), list):
        return data["exams"]
    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        return [data]
    if isinstance(data, list):
        return data
    raise ValueError("JSON must be a list of exams, or an object with `exams: [...]`")


def import_exams(group, creator, items, skip_duplicates=False):
    """Returns (exams_created, questions_imported, questions_skipped). Caller commits."""
    existing = {e.title for e in group.exams} if skip_duplicates else set()
    created = imported = skipped = 0

    for raw in items:
        title = (raw.get("title") or "").strip() if isinstance(raw, dict) else ""
        if not title or (skip_duplicates and title in existing):
            skipped += len(raw.get("questions") or []) if isinstance(raw, dict) else 0
            continue

        questions = []
        for q in raw.get("questions") or []:
            norm = normalize_item(q)
            if norm is None:
                skipped += 1
                continue
            questions.append(norm)
        if not questions:
            continue

        create_exam(group, creator, title, questions, description=raw.get("description"))
        existing.add(title)
        created += 1
        imported += len(questions)

    db.session.flush()
    return created, imported, skipped
