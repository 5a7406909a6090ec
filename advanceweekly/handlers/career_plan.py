"""Career plan generation: expectations for the user's current level and the next one."""

import logging
import re
from typing import Any

from pydantic import BaseModel, Field

from advanceweekly.errors import ValidationError
from advanceweekly.handlers.base import JobContext, JobHandler
from advanceweekly.models.operation import JobType
from advanceweekly.services.llm import LLMGateway, ModelParams, llm_gateway
from advanceweekly.weeks import utc_now

logger = logging.getLogger(__name__)

# Common technology career ladders
NEXT_LEVEL = {
    "Junior Software Engineer": "Software Engineer",
    "Software Engineer": "Senior Software Engineer",
    "Senior Software Engineer": "Staff Software Engineer",
    "Staff Software Engineer": "Principal Software Engineer",
    "Principal Software Engineer": "Distinguished Engineer",
    "Associate Product Manager": "Product Manager",
    "Product Manager": "Senior Product Manager",
    "Senior Product Manager": "Principal Product Manager",
    "Principal Product Manager": "Director of Product",
    "Junior Designer": "Product Designer",
    "Product Designer": "Senior Product Designer",
    "Senior Product Designer": "Staff Product Designer",
    "Staff Product Designer": "Principal Designer",
    "Junior Data Scientist": "Data Scientist",
    "Data Scientist": "Senior Data Scientist",
    "Senior Data Scientist": "Staff Data Scientist",
    "Staff Data Scientist": "Principal Data Scientist",
    "Junior DevOps Engineer": "DevOps Engineer",
    "DevOps Engineer": "Senior DevOps Engineer",
    "Senior DevOps Engineer": "Staff DevOps Engineer",
    "Staff DevOps Engineer": "Principal DevOps Engineer",
    "Junior QA Engineer": "QA Engineer",
    "QA Engineer": "Senior QA Engineer",
    "Senior QA Engineer": "Staff QA Engineer",
    "Staff QA Engineer": "Principal QA Engineer",
    "Junior": "Mid-Level",
    "Mid-Level": "Senior",
    "Senior": "Staff",
    "Staff": "Principal",
    "Principal": "Distinguished",
}

# Checked in order against unmapped titles, most senior keyword first
_LEVEL_STEPS = (
    ("principal", "Distinguished"),
    ("staff", "Principal"),
    ("senior", "Staff"),
    ("mid-level", "Senior"),
    ("junior", "Mid-Level"),
)


def next_seniority_level(level: str) -> str:
    """Next rung on the ladder for ``level``, falling back to a prefix-based guess."""
    level = level.strip()
    if level in NEXT_LEVEL:
        return NEXT_LEVEL[level]

    lowered = level.lower()
    for keyword, replacement in _LEVEL_STEPS:
        if keyword in lowered:
            return re.sub(keyword, replacement, level, count=1, flags=re.IGNORECASE)
    return f"Senior {level}"


CAREER_PLAN_SYSTEM_PROMPT = """You are a career coach for technology professionals (engineers, product managers, designers and similar roles). Be pragmatic and specific, avoid corporate jargon, and output only the requested structure."""


def build_career_plan_prompt(
    role: str,
    level: str,
    company_ladder: str | None = None,
    current_level: str | None = None,
    current_level_guidelines: str | None = None,
) -> str:
    lines = [
        "Describe what is expected of a technology professional at the following role and level,",
        "based on established industry career ladders and competency matrices.",
        "",
        f"Role: {role}",
        f"Level: {level}",
    ]
    if company_ladder:
        lines.append(f"Company context: {company_ladder}")

    if current_level_guidelines:
        lines += [
            "",
            f"REFERENCE: expectations already written for the current level ({current_level}):",
            current_level_guidelines,
            "",
            f"Build on them so the expectations for {level} show a clear step up in scope,",
            "complexity and leadership while keeping the same terminology.",
        ]

    lines += [
        "",
        "Output markdown with exactly these headings, two or three bullet points each:",
        "#### Impact & Ownership",
        "#### Craft & Expertise",
        "#### Communication & Collaboration",
        "#### Strategic Focus",
    ]
    return "\n".join(lines)


class CareerPlanInput(BaseModel):
    role: str = Field(min_length=1)
    level: str = Field(min_length=1)
    company_ladder: str | None = None


class CareerPlanHandler(JobHandler[CareerPlanInput]):
    """Two-stage generation: the current level first, then the next level with it as context."""

    job_type = JobType.CAREER_PLAN_GENERATION
    input_model = CareerPlanInput

    def __init__(self, llm: LLMGateway | None = None):
        self._llm = llm or llm_gateway

    def validate(self, payload: CareerPlanInput) -> None:
        if not payload.role.strip() or not payload.level.strip():
            raise ValidationError("role and level must not be blank")

    async def process(self, payload: CareerPlanInput, context: JobContext) -> dict[str, Any]:
        params = ModelParams(system=CAREER_PLAN_SYSTEM_PROMPT)
        role, level = payload.role.strip(), payload.level.strip()

        await context.report(20, f"Analyzing expectations for {level} {role}")
        current_plan = await self._llm.generate(
            build_career_plan_prompt(role, level, payload.company_ladder), params
        )

        next_level = next_seniority_level(level)
        await context.report(60, f"Analyzing expectations for {next_level}")
        next_plan = await self._llm.generate(
            build_career_plan_prompt(
                role,
                next_level,
                payload.company_ladder,
                current_level=level,
                current_level_guidelines=current_plan,
            ),
            params,
        )

        logger.info("Generated career plan for user %s: %s -> %s", context.user_id, level, next_level)
        return {
            "current_level": level,
            "next_level": next_level,
            "current_level_plan": current_plan.strip(),
            "next_level_expectations": next_plan.strip(),
            "generated_at": utc_now().isoformat(),
        }
