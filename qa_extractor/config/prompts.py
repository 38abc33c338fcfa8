"""LLM prompt templates for the extraction and classification stages.

Templates use ``{{CURRICULUM_CONTEXT}}`` / ``{raw_text}`` placeholders that are
substituted with ``str.replace`` rather than ``str.format`` so the literal JSON
examples need no brace escaping.
"""

from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

CURRICULUM_PLACEHOLDER = "{{CURRICULUM_CONTEXT}}"

JSON_ONLY_SUFFIX = " Return ONLY valid JSON. No markdown."

QNA_EXTRACTION_PROMPT = """You are an expert technical interview analyst.
You will receive a segment of a timestamped interview transcript between an interviewer and a candidate.

Extract every question the interviewer asks and the candidate's answer to it.

RULES:
1. Rewrite each question as a complete, grammatical interview question.
2. Summarize the candidate's answer faithfully; use "N/A" when the candidate did not answer.
3. Skip small talk, scheduling, audio checks and greetings.
4. Merge follow-up clarifications into the question they belong to.

OUTPUT:
A JSON array of objects: [{"question_text": "...", "answer_text": "..."}]"""

CLASSIFY_PROMPT_TEMPLATE = """### SYSTEM ROLE
You are a Senior Technical Curriculum Architect and Data Standardizer.
You will receive a JSON array of Q&A pairs. Classify, tag and enrich each pair with standardized metadata.

### CURRICULUM CONTEXT
Use the following curriculum text to determine if a topic is covered in the syllabus:
{{CURRICULUM_CONTEXT}}

### OUTPUT STRUCTURE
Return a JSON array where EACH item keeps the original `question_text` unchanged and adds:
`question_type`, `question_concept`, `difficulty`, `topic`, `sub_topic`, `relevancy_score`, `curriculum_coverage`.

### ENUM RULES (UPPERCASE_SNAKE_CASE)
* question_type: CODING | THEORY | BEHAVIORAL | SELF_INTRODUCTION | PROJECT | GENERAL
* difficulty: EASY | MEDIUM | HARD
* relevancy_score: integer 1-10, how useful the question is for interview preparation
* curriculum_coverage: COVERED | NOT_COVERED | N/A
* question_concept: single best fit, e.g. JAVA, PYTHON, JAVASCRIPT, SQL, REACT_JS, NODE_JS,
  DSA, OOP, SYSTEM_DESIGN, DBMS, OS, CN, AI_ML, DATA_SCIENCE, CLOUD_COMPUTING, DEVOPS,
  GIT, APTITUDE, ENGLISH, BEHAVIORAL, GENERAL

### TOPIC RULES
* `topic` is a chapter or module inside the concept and must differ from `question_concept`.
* `sub_topic` is the specific concept being tested."""

DRILLDOWN_PROMPT_TEMPLATE = """### SYSTEM ROLE
You are a technical interview question formatter and classifier.
You will receive raw interview notes for one interview round.
Convert unformatted notes into well-formed interview questions, classify each question, and mark curriculum coverage.

### INPUT DATA
One JSON object with `interview_round` (round name) and `round_text` (raw notes, may be shorthand).

### CURRICULUM CONTEXT
Use this curriculum text to determine coverage:
{{CURRICULUM_CONTEXT}}

### OUTPUT STRUCTURE
Return a JSON array. Each item must include:
`question_text`, `question_type`, `question_concept`, `difficulty`, `topic`, `sub_topic`,
`curriculum_coverage` (COVERED | NOT_COVERED | N/A)

### ENUM RULES (UPPERCASE_SNAKE_CASE)
* question_type: CODING | THEORY | BEHAVIORAL | SELF_INTRODUCTION | PROJECT | GENERAL
* difficulty: EASY | MEDIUM | HARD
* question_concept: one best-fit value such as JAVA, PYTHON, JAVASCRIPT, C++, SQL, REACT_JS,
  NODE_JS, SPRING_BOOT, DJANGO, DSA, OOP, SYSTEM_DESIGN, DBMS, OS, CN, AI_ML, DATA_SCIENCE,
  CLOUD_COMPUTING, DEVOPS, GIT, DOCKER, AWS, APTITUDE, ENGLISH, COMMUNICATION, BEHAVIORAL,
  ANY_LANGUAGE (technical but generic), GENERAL (non-technical)

### EXTRACTION RULES
* Always convert shorthand or keywords into complete interview questions.
* If round_text contains multiple prompts, return one item per question.
* Return only raw JSON. No markdown."""

ASSESSMENT_EXTRACTION_PROMPT = """You are an Expert Technical Interview Data Extractor.
Extract questions strictly following these rules:

1. CLEAN TEXT: Remove image placeholders like `![image_id]` and phrases like "Refer to image below".
2. MCQ FORMATTING: Combine question text and ALL options (A, B, C, D) into `question_text`.
3. CODING FORMATTING: Extract the ENTIRE problem description verbatim.
4. IMAGES: If a diagram is crucial, set `has_image` to "Yes".

RAW TEXT:
{raw_text}

OUTPUT JSON:
{
    "questions": [
        {
            "category": "General tech stack (e.g. Java, Aptitude, SQL, WebDev)",
            "question_text": "Cleaned question text...",
            "difficulty": "Easy/Medium/Hard",
            "has_image": "Yes/No"
        }
    ]
}"""

ASSESSMENT_CLASSIFY_PROMPT_TEMPLATE = """### SYSTEM ROLE
You are a Senior Technical Curriculum Architect and Data Standardizer.
You will receive a JSON array of assessment questions. Classify, tag and enrich each one.

### CURRICULUM CONTEXT
{{CURRICULUM_CONTEXT}}

### OUTPUT STRUCTURE
Return a JSON array where EACH item keeps `question_text` unchanged and adds
`question_type`, `question_concept`, `difficulty`, `topic`, `sub_topic`, `curriculum_coverage`.

### ENUM RULES (UPPERCASE_SNAKE_CASE)
* question_type: CODING (code, algorithms, queries) | THEORY | BEHAVIORAL | SELF_INTRODUCTION | PROJECT | GENERAL
* difficulty: EASY | MEDIUM | HARD
* curriculum_coverage: COVERED | NOT_COVERED | N/A
* question_concept: HTML, CSS, BOOTSTRAP, JAVASCRIPT, TYPESCRIPT, REACT_JS, NEXT_JS, NODE_JS,
  EXPRESS_JS, SPRING_BOOT, REST_API, PYTHON, JAVA, SQL, DATABASES, AI_ML, DATA_SCIENCE, DSA,
  OOP, SYSTEM_DESIGN, OPERATING_SYSTEM, COMPUTER_NETWORKING, GIT, DOCKER, CLOUD_COMPUTING,
  AGILE, APTITUDE, ENGLISH, BEHAVIORAL

### TOPIC RULES
* `topic` is a chapter or module inside the concept and MUST NOT equal `question_concept`
  (HTML -> SEMANTIC_ELEMENTS, CSS -> FLEXBOX).
* `sub_topic` is the specific concept (e.g. "Justify Content").

Provide ONLY the raw JSON array. No markdown."""

ASSIGNMENT_PROMPT_TEMPLATE = """You are an expert Senior Technical Curriculum Architect.
Analyze assignment descriptions and extract structured metadata.

CURRICULUM CONTEXT:
{{CURRICULUM_CONTEXT}}

OUTPUT FORMAT: JSON object ONLY.

FIELDS TO EXTRACT:
1. "question_text": a professional summary (2-4 sentences) of WHAT needs to be built.
2. "tech_stacks": LIST of required technologies, mapped to
   [JAVA, PYTHON, JAVASCRIPT, HTML, CSS, SQL, REACT_JS, NODE_JS, EXPRESS_JS, SPRING_BOOT,
   DSA, SYSTEM_DESIGN, WEB_DEVELOPMENT, CLOUD_COMPUTING, DATA_SCIENCE]. Fallback: GENERAL.
3. "difficulty_level": EASY | MEDIUM | HARD based on complexity.
4. "question_type": CODING | PROJECT | ASSIGNMENT | CASE_STUDY. Default: ASSIGNMENT.
5. "curriculum_coverage": COVERED | NOT_COVERED | N/A, checked against CURRICULUM CONTEXT."""

OCR_PROMPT = "Extract all visible text from this document. Return plain text only."


def with_curriculum(template: str, curriculum: str) -> str:
    """Substitute the curriculum placeholder, falling back to N/A."""
    return template.replace(CURRICULUM_PLACEHOLDER, curriculum.strip() or "N/A")


def _load_override(prompts_dir: Path, file_name: str) -> str | None:
    path = prompts_dir / file_name
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return None
    logger.info("prompt_override_loaded", path=str(path))
    return text


def load_qna_prompt(prompts_dir: Path) -> str:
    """Q&A extraction prompt, overridable by ``q&a.txt``."""
    return _load_override(prompts_dir, "q&a.txt") or QNA_EXTRACTION_PROMPT


def load_classify_template(prompts_dir: Path) -> str:
    """Interview classification template, overridable by ``classify.txt``."""
    return _load_override(prompts_dir, "classify.txt") or CLASSIFY_PROMPT_TEMPLATE
