from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from cv_assistant.ai.types import ChatMessage


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    system: str
    user: str
    output_schema: dict[str, Any]

    def render(self, **values: str) -> list[ChatMessage]:
        schema_text = json.dumps(self.output_schema, ensure_ascii=False)
        system = (
            f"{self.system}\n\n"
            "Respond with a single JSON object and nothing else. "
            f"Schema: {schema_text}"
        )
        return [
            ChatMessage(role="system", content=system),
            ChatMessage(role="user", content=self.user.format(**values)),
        ]


def optional_section(title: str, body: str | None) -> str:
    text = (body or "").strip()
    if not text:
        return ""
    return f"{title}:\n```\n{text}\n```\n\n"


CV_ANALYZER = PromptTemplate(
    name="cv_analyzer",
    system=(
        "You are an expert career advisor who analyzes CVs against job descriptions. "
        "Score the overall match from 0 to 100 in match_percentage. "
        "Score experience, education and skills alignment separately from 0 to 100 in score_breakdown. "
        "In suggestions, list job description keywords missing or underrepresented in the CV (keywords_to_add), "
        "skills already in the CV that deserve more emphasis (skills_to_emphasize), "
        "and describe which experience should be detailed with quantified, job-relevant results (experience_to_detail)."
    ),
    user=(
        "CV TEXT:\n```\n{cv_text}\n```\n\n"
        "JOB DESCRIPTION TEXT:\n```\n{job_description_text}\n```\n\n"
        "ANALYSIS:"
    ),
    output_schema={
        "match_percentage": "integer 0-100",
        "score_breakdown": {"experience": "integer 0-100", "education": "integer 0-100", "skills": "integer 0-100"},
        "suggestions": {
            "keywords_to_add": ["string"],
            "skills_to_emphasize": ["string"],
            "experience_to_detail": "string",
        },
    },
)

CREATE_CV = PromptTemplate(
    name="create_cv",
    system=(
        "You are an expert CV writer producing ATS-friendly resumes. "
        "Rewrite the candidate's CV for the target job: integrate the job's keywords naturally, "
        "rewrite the summary for the role, prioritise the most relevant experience and quantify achievements. "
        "Never add experience, qualifications or facts that are not in the original CV. "
        "Use standard section headings, no tables, columns or graphics. "
        "Format the CV in Markdown: start with a '# ' heading holding the candidate's name, "
        "use '## ' for sections, '### ' for roles and '- ' bullets. "
        "Put only the Markdown CV in generated_cv_markdown, without code fences or commentary."
    ),
    user=(
        "ORIGINAL CV TEXT:\n```\n{cv_text}\n```\n\n"
        "TARGET JOB DESCRIPTION TEXT:\n```\n{job_description_text}\n```\n\n"
        "{analysis_section}"
        "TAILORED CV (MARKDOWN):"
    ),
    output_schema={"generated_cv_markdown": "string"},
)

CREATE_COVER_LETTER = PromptTemplate(
    name="create_cover_letter",
    system=(
        "You are an expert career advisor writing ATS-friendly cover letters. "
        "Use the candidate's name from the CV and connect two or three of their strongest, "
        "quantified qualifications to the most important requirements of the job. "
        "Structure: salutation, an introduction naming the role, one or two body paragraphs, "
        "a closing paragraph asking for an interview, a closing phrase and the candidate's name. "
        "Write plain text only: no Markdown, no asterisks, no headings, no bullet symbols. "
        "Separate the salutation, each paragraph, the closing and the signature with exactly one blank line. "
        "Never invent experience that is not in the CV. "
        "When a previous letter and feedback are provided, write an improved letter that addresses the feedback. "
        "Put only the letter in generated_cover_letter_text."
    ),
    user=(
        "CANDIDATE CV TEXT:\n```\n{cv_text}\n```\n\n"
        "TARGET JOB DESCRIPTION TEXT:\n```\n{job_description_text}\n```\n\n"
        "{analysis_section}"
        "{prior_letter_section}"
        "{feedback_section}"
        "COVER LETTER:"
    ),
    output_schema={"generated_cover_letter_text": "string"},
)

EVALUATE_COVER_LETTER = PromptTemplate(
    name="evaluate_cover_letter",
    system=(
        "You are an expert career advisor and editor evaluating cover letters against job descriptions. "
        "Score in relevance_score (0-100) how directly the letter addresses the job's requirements. "
        "Give brief feedback on tone (tone_analysis), on how naturally job keywords are used and which are missing "
        "(keyword_usage), on readability (clarity_and_conciseness) and on ATS compatibility of the plain text "
        "(ats_friendliness). Summarise strengths and weaknesses with one or two concrete, actionable improvements "
        "in overall_feedback. Every field must be filled."
    ),
    user=(
        "COVER LETTER TEXT:\n```\n{cover_letter_text}\n```\n\n"
        "TARGET JOB DESCRIPTION TEXT:\n```\n{job_description_text}\n```\n\n"
        "EVALUATION:"
    ),
    output_schema={
        "relevance_score": "integer 0-100",
        "tone_analysis": "string",
        "keyword_usage": "string",
        "clarity_and_conciseness": "string",
        "ats_friendliness": "string",
        "overall_feedback": "string",
    },
)
