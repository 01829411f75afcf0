"""
Prompt templates and the builders that fill them.

Templates are plain ``str.format`` strings (literal braces doubled).  Every
template that expects JSON back ends with the same output rules, which
steer the model away from the malformations the parser has to repair.
"""

from __future__ import annotations

from .allocation import topic_weightage
from .config import (
    DEFAULT_TOPIC_WEIGHTAGE,
    EXISTING_CONTEXT_CHARS,
    OPTION_QUESTION_TYPES,
    PAGE_MEMORY_PREVIEW_CHARS,
    PREVIOUS_PAGE_CONTEXT_CHARS,
    PYQ_SOLUTION_PREVIEW_CHARS,
    RECENT_QUESTIONS_KEPT,
    SOLUTION_NOTES_CHARS,
    TOPIC_NOTES_CHARS,
)

# ---------------------------------------------------------------------------
# Shared blocks
# ---------------------------------------------------------------------------

JSON_ARRAY_RULES: str = """\
ABSOLUTE JSON REQUIREMENTS (NON-NEGOTIABLE):
1. Return ONLY the JSON array - NOTHING before or after
2. NEVER use markdown code blocks (no ```json, no ```, no code fences)
3. NEVER include actual line breaks in string values (use spaces instead)
4. NEVER use control characters (\\n, \\r, \\t, etc.) inside strings
5. NEVER use smart quotes, always use straight quotes (")
6. NEVER use Unicode escape sequences (\\uXXXX)
7. NEVER use hex escapes (\\xXX) or octal escapes (\\nnn)
8. Keep all text as ONE continuous line - use periods to separate steps
9. Start output directly with [ and end with ] - nothing else"""

QUESTION_TYPE_REQUIREMENTS: dict[str, str] = {
    "MCQ": """\
MCQ Requirements:
- Create exactly 4 options (A, B, C, D)
- EXACTLY ONE option must be correct
- Other 3 options must be plausible but incorrect
- Question must test conceptual understanding
- Provide clear, unambiguous correct answer""",
    "MSQ": """\
MSQ Requirements:
- Create exactly 4 options (A, B, C, D)
- 2-3 options should be correct (never just 1 or all 4)
- Incorrect options must be plausible distractors
- Question should test multiple concepts
- Clearly identify all correct options""",
    "NAT": """\
NAT Requirements:
- Question must have a numerical answer
- Answer should be a specific number (integer or decimal)
- No options needed
- Include proper units if applicable
- Ensure answer is calculable and unique""",
    "Subjective": """\
Subjective Requirements:
- Create comprehensive descriptive question
- Should test deep understanding
- Include multiple parts if appropriate
- Provide detailed solution approach
- No options needed""",
}

EXAMPLE_ANSWERS: dict[str, str] = {
    "MCQ": "A",
    "MSQ": "A, C",
    "NAT": "42.5",
    "Subjective": "Detailed answer",
}

# ---------------------------------------------------------------------------
# Question generation
# ---------------------------------------------------------------------------

GENERATION_PROMPT: str = """\
You are a professor creating {exam_name} - {course_name} questions. \
Generate {count} unique {question_type} question(s) for: "{topic_name}".

TOPIC INFORMATION:
- Topic: {topic_name}
- Weightage: {weightage_pct:.1f}%
{notes_context}{pyq_context}{existing_context}{recent_context}

YOUR TASK:
1. Study the Previous Year Questions (PYQs) carefully - understand the pattern, difficulty level, and style
2. Create a NEW question that follows the same pattern but is completely fresh (DO NOT COPY)
3. When generating the solution, strictly use the methods/concepts from the Topic Notes
4. Ensure the question tests deep conceptual understanding

CRITICAL REQUIREMENTS for {question_type} questions:

{type_requirements}

QUALITY STANDARDS:
1. Questions must be 100% original - inspired by PYQs but never duplicates
2. Use proper academic terminology and mathematical notation
3. Solutions MUST use methods from Topic Notes (not alternative approaches)
4. Match the {exam_name} difficulty level and exam pattern
5. Write like a professor: natural, clear, educational
6. Avoid repetitive patterns - each question should feel unique
7. If you get stuck on a solution, try a different approach rather than continuing with errors

{json_rules}

CORRECT JSON FORMAT:
[{{"question_statement":"What is X?","question_type":"{question_type}",{options_example}"answer":"{answer_example}","solution":"Step 1. Do X. Step 2. Calculate Y. Step 3. Conclude Z."}}]

Generate exactly {count} question(s). Output only pure JSON. No markdown, no line breaks in strings."""


def format_question_block(question: dict, index: int) -> str:
    """Render one stored question as a numbered context entry."""
    block = f"{index}. {question.get('question_statement', '')}"
    if question.get("options"):
        block += f"\nOptions: {', '.join(str(o) for o in question['options'])}"
    if question.get("answer"):
        block += f"\nAnswer: {question['answer']}"
    return block


def format_existing_questions(questions: list[dict]) -> str:
    """Render already-generated questions for the de-duplication context."""
    return "\n\n".join(
        format_question_block(q, i) for i, q in enumerate(questions, start=1)
    )


def _format_pyq(pyq: dict, index: int) -> str:
    block = (
        f"\nPYQ {index} ({pyq.get('year') or 'N/A'} - {pyq.get('slot') or 'N/A'}):"
        f"\nQuestion: {pyq.get('question_statement', '')}"
    )
    if pyq.get("options"):
        block += f"\nOptions: {', '.join(str(o) for o in pyq['options'])}"
    if pyq.get("answer"):
        block += f"\nAnswer: {pyq['answer']}"
    if pyq.get("solution"):
        block += f"\nSolution Approach: {str(pyq['solution'])[:PYQ_SOLUTION_PREVIEW_CHARS]}"
    return block


def build_generation_prompt(
    topic: dict,
    exam_name: str,
    course_name: str,
    question_type: str,
    pyqs: list[dict],
    existing_context: str,
    recent_questions: list[str],
    count: int = 1,
    topic_notes: str = "",
) -> str:
    """
    Build the prompt asking for ``count`` new questions on one topic.

    Context sections are included only when non-empty: topic notes (first
    2000 chars), PYQs for inspiration, the tail of the existing-question
    context (last 1500 chars), and the last 3 recently generated
    statements.
    """
    notes_context = (
        f"\nTOPIC NOTES (Use these methods/concepts for the solution):\n"
        f"{topic_notes[:TOPIC_NOTES_CHARS]}\n"
        if topic_notes else ""
    )
    pyq_context = (
        "\nPREVIOUS YEAR QUESTIONS FOR INSPIRATION (Study these patterns carefully):"
        + "\n".join(_format_pyq(pyq, i) for i, pyq in enumerate(pyqs, start=1))
        + "\n"
        if pyqs else ""
    )
    existing = (
        f"\nALREADY GENERATED QUESTIONS (Avoid duplication, create fresh questions):\n"
        f"{existing_context[-EXISTING_CONTEXT_CHARS:]}\n"
        if existing_context else ""
    )
    recent_lines = "\n".join(recent_questions[-RECENT_QUESTIONS_KEPT:])
    recent = (
        f"\nRECENTLY GENERATED (Must be different from these):\n{recent_lines}\n"
        if recent_questions else ""
    )
    weightage = topic_weightage(topic) or DEFAULT_TOPIC_WEIGHTAGE
    options_example = (
        '"options":["Option A","Option B","Option C","Option D"],'
        if question_type in OPTION_QUESTION_TYPES
        else '"options":null,'
    )

    return GENERATION_PROMPT.format(
        exam_name=exam_name,
        course_name=course_name,
        count=count,
        question_type=question_type,
        topic_name=topic.get("name", ""),
        weightage_pct=weightage * 100,
        notes_context=notes_context,
        pyq_context=pyq_context,
        existing_context=existing,
        recent_context=recent,
        type_requirements=QUESTION_TYPE_REQUIREMENTS.get(question_type, ""),
        json_rules=JSON_ARRAY_RULES,
        options_example=options_example,
        answer_example=EXAMPLE_ANSWERS.get(question_type, ""),
    )


# ---------------------------------------------------------------------------
# PYQ solutions
# ---------------------------------------------------------------------------

SOLUTION_PROMPT: str = """\
You are an expert professor solving {subject} questions with 100% accuracy.
{notes_context}
CRITICAL ACCURACY REQUIREMENTS:
1. Triple-check every calculation before finalizing
2. For MCQ: Verify each option thoroughly, only mark ONE as correct
3. For MSQ: Check all options, mark ALL correct ones (usually 2-3 options)
4. For NAT: Calculate the exact numerical value, verify with alternative method if possible
5. For Subjective: Provide comprehensive step-by-step answer
6. Use the concepts from Topic Notes when available
7. If unsure, recalculate using a different approach to verify

Questions to solve:
{questions}

For each question provide:
- CORRECT answer (MCQ: 'A' or 'B' or 'C' or 'D', MSQ: 'A, C' format, NAT: exact numerical value, Subjective: comprehensive answer)
- Step-by-step solution with clear explanations

{json_rules}

CORRECT JSON FORMAT:
[{{"answer":"A","solution":"Step 1. Calculate X. Step 2. Verify Y. Step 3. Conclude Z. Therefore answer is A."}}]

Return one entry per question, in the order given. Output only pure JSON."""


def _format_pyq_to_solve(pyq: dict, index: int) -> str:
    block = (
        f"\nQuestion {index}:"
        f"\nStatement: {pyq.get('question_statement', '')}"
        f"\nType: {pyq.get('question_type', '')}"
    )
    if pyq.get("options"):
        lettered = "\n".join(
            f"  {chr(65 + i)}. {option}" for i, option in enumerate(pyq["options"])
        )
        block += f"\nOptions:\n{lettered}"
    return block


def build_solution_prompt(pyqs: list[dict], topic_notes: str = "", subject: str = "") -> str:
    """Build the prompt asking for an answer and solution to each PYQ."""
    notes_context = (
        f"\nTOPIC NOTES (Use these concepts and methods to solve):\n"
        f"{topic_notes[:SOLUTION_NOTES_CHARS]}\n"
        if topic_notes else ""
    )
    return SOLUTION_PROMPT.format(
        subject=subject or "academic",
        notes_context=notes_context,
        questions="\n".join(_format_pyq_to_solve(q, i) for i, q in enumerate(pyqs, start=1)),
        json_rules=JSON_ARRAY_RULES,
    )


# ---------------------------------------------------------------------------
# Answer review
# ---------------------------------------------------------------------------

REVIEW_PROMPT: str = """\
You are an expert question validator. Analyze this question thoroughly and \
determine if it's WRONG or CORRECT based on these strict criteria:

Question Details:
- Statement: {statement}
- Type: {question_type}
- Options: {options}
- Provided Answer: {answer}

VALIDATION RULES:

For MCQ (Single Correct):
- WRONG if: No options are correct, multiple options are correct, or provided answer doesn't match any correct option
- CORRECT if: Exactly one option is correct and matches the provided answer

For MSQ (Multiple Correct):
- WRONG if: No options are correct, or provided answer doesn't include all correct options
- CORRECT if: One or more options are correct and provided answer matches all correct options

For NAT (Numerical Answer):
- WRONG if: Answer is not numerical, question is unsolvable, or provided answer is mathematically incorrect
- CORRECT if: Question is solvable and provided answer is mathematically correct

For Subjective:
- Always CORRECT (no validation needed)

ANALYSIS PROCESS:
1. Solve the question independently
2. Check if provided answer matches your solution
3. For MCQ/MSQ: Verify each option's correctness
4. For NAT: Verify numerical accuracy

CRITICAL JSON OUTPUT REQUIREMENTS:
1. Return ONLY the JSON object - no text before or after
2. Do NOT use markdown code blocks
3. Do NOT include line breaks in strings - keep all text single-line
4. Use simple ASCII quotes only

JSON FORMAT (all text must be single-line):
{{"isWrong": true, "reason": "Single line explanation", "correctAnswer": "Correct answer if applicable"}}"""


def build_review_prompt(question: dict) -> str:
    """Build the prompt asking the model to check a question's answer."""
    options = question.get("options")
    return REVIEW_PROMPT.format(
        statement=question.get("question_statement", ""),
        question_type=question.get("question_type", ""),
        options=", ".join(str(o) for o in options) if options else "None",
        answer=question.get("answer") or "None",
    )


# ---------------------------------------------------------------------------
# Page extraction
# ---------------------------------------------------------------------------

EXTRACTION_PROMPT: str = """\
You are an expert at extracting questions from academic exam papers. \
Analyze this page image and extract ALL questions with perfect accuracy.

CRITICAL INSTRUCTIONS:
1. Extract EVERY question from this page, no matter how small or partial
2. For each question, determine the correct question type: MCQ, MSQ, NAT, or Subjective
3. Extract all options exactly as written (including mathematical notation)
4. DO NOT guess answers - only extract if clearly visible
5. Handle multi-page questions by noting continuation
6. Preserve all mathematical expressions, formulas, and special notation

Question Type Guidelines:
- MCQ: Single correct answer from multiple options
- MSQ: Multiple correct answers possible from options
- NAT: Numerical answer type (no options, answer is a number)
- Subjective: Descriptive/essay type questions
{context}
Return a JSON array of questions in this exact format:
[
  {{
    "question_statement": "Complete question text with all mathematical notation",
    "question_type": "MCQ|MSQ|NAT|Subjective",
    "options": ["Option A text", "Option B text"] or null for NAT/Subjective,
    "question_number": "Question number if visible",
    "has_image": true/false,
    "image_description": "Description of any diagrams/figures",
    "is_continuation": true/false,
    "spans_multiple_pages": true/false
  }}
]

If no questions are found, return an empty array [].
Focus on accuracy and completeness. Extract everything visible."""


def build_extraction_prompt(
    previous_context: str = "",
    page_memory: dict[int, str] | None = None,
) -> str:
    """
    Build the page-extraction prompt.

    Includes the tail of the previous page's text (last 500 chars) and a
    200-char preview of every page remembered so far, so questions that
    span pages can be stitched together.
    """
    context = ""
    if previous_context:
        context += (
            f"\nPrevious page context: "
            f"{previous_context[-PREVIOUS_PAGE_CONTEXT_CHARS:]}\n"
        )
    if page_memory:
        memory_lines = "\n".join(
            f"Page {page}: {content[:PAGE_MEMORY_PREVIEW_CHARS]}"
            for page, content in page_memory.items()
        )
        context += f"\nPage memory:\n{memory_lines}\n"
    return EXTRACTION_PROMPT.format(context=context)
