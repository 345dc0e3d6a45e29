from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from job_pilot.config import settings
from job_pilot.errors import DraftingError

logger = logging.getLogger(__name__)

TONE_INSTRUCTIONS = {
    "professional": "Write in a professional, polished tone. Formal but not stiff.",
    "confident": "Write with confidence and authority. Show you're the right fit.",
    "friendly": "Write in a warm, approachable tone. Like talking to a future colleague.",
    "casual": "Write casually but still professionally. Relaxed and direct.",
    "formal": "Write in a traditional, structured formal tone.",
}

BASE_RULES = """You are an expert job application email writer.

RULES:
- Write a professional application email (150-250 words)
- No cliches such as "I am writing to express my interest"
- No placeholder brackets like [Company] or {name}; use the actual values provided
- Mention 2-3 specific qualifications from the candidate's resume that match the job
- Include a clear call-to-action: request for interview, call, or next steps
- End with the candidate's full name"""

OUTPUT_FORMAT = """OUTPUT FORMAT:
Return ONLY valid JSON. No markdown, no backticks, no explanation.
{"subject": "Email subject line here", "body": "Full email body here", "cover_letter": "Short cover letter (150-300 words), or an empty string"}"""

COVER_LETTER_RULES = """You are an expert cover letter writer.

RULES:
- Write a one-page cover letter (200-350 words) addressed to the hiring team
- Tie 2-3 concrete achievements from the candidate's resume to the job requirements
- No cliches and no placeholder brackets; use the actual values provided
- End with the candidate's full name

OUTPUT FORMAT:
Return ONLY valid JSON. No markdown, no backticks, no explanation.
{"cover_letter": "Full cover letter here"}"""


class EmailTemplate(BaseModel):
    subject: Optional[str] = None
    body: Optional[str] = None


class GeneratedEmail(BaseModel):
    subject: str = Field(min_length=5, max_length=200)
    body: str = Field(min_length=50, max_length=5000)
    cover_letter: Optional[str] = None


class EmailDrafter:
    """Turns job + profile + résumé into an application email via the LLM."""

    def __init__(self, llm_client, timeout: Optional[float] = None):
        self.llm_client = llm_client
        self.timeout = timeout or settings.ai_timeout_seconds

    async def generate_email(self, job, profile, resume, template: Optional[EmailTemplate] = None) -> GeneratedEmail:
        if self.llm_client is None:
            raise DraftingError("No AI provider is configured for drafting")

        system = self._system_prompt(profile)
        prompt = self._user_prompt(job, profile, resume, template)
        data = await self._complete(prompt, system)

        try:
            email = GeneratedEmail(
                subject=data.get("subject", ""),
                body=data.get("body", ""),
                cover_letter=(data.get("cover_letter") or data.get("coverLetter") or "").strip() or None,
            )
        except (ValidationError, AttributeError) as e:
            raise DraftingError(f"AI returned an unusable email: {e}")

        subject = replace_placeholders(email.subject, job, profile)
        body = replace_placeholders(email.body, job, profile)
        if profile.custom_signature:
            body = body.strip() + "\n\n" + profile.custom_signature
        cover_letter = replace_placeholders(email.cover_letter, job, profile) if email.cover_letter else None
        return GeneratedEmail(subject=subject, body=body, cover_letter=cover_letter)

    async def generate_cover_letter(self, job, profile, resume) -> str:
        """Standalone cover letter for an existing application."""
        if self.llm_client is None:
            raise DraftingError("No AI provider is configured for drafting")

        lines = self._user_prompt(job, profile, resume, None).splitlines()[:-1]
        lines.append("Generate the cover letter now. Return ONLY JSON.")
        data = await self._complete("\n".join(lines), COVER_LETTER_RULES)

        try:
            text = (data.get("cover_letter") or data.get("coverLetter") or "").strip()
        except AttributeError:
            text = ""
        if len(text) < 100:
            raise DraftingError("AI returned an unusable cover letter. Please try regenerating.")
        return replace_placeholders(text, job, profile)

    async def _complete(self, prompt: str, system: str):
        try:
            return await asyncio.wait_for(
                self.llm_client.complete_json(prompt, system=system),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise DraftingError(f"AI drafting timed out after {self.timeout:.0f}s")
        except json.JSONDecodeError:
            raise DraftingError("AI returned invalid JSON. Please try regenerating.")
        except DraftingError:
            raise
        except Exception as e:
            logger.error(f"Drafting call failed: {e}")
            raise DraftingError(f"AI drafting failed: {e}")

    @staticmethod
    def _system_prompt(profile) -> str:
        parts = [BASE_RULES]
        tone = profile.preferred_tone or "professional"
        parts.append(f"TONE: {TONE_INSTRUCTIONS.get(tone, TONE_INSTRUCTIONS['professional'])}")
        if profile.email_language and profile.email_language != "English":
            parts.append(f"LANGUAGE: Write the entire email in {profile.email_language}.")
        if profile.custom_closing:
            parts.append(f'CLOSING: End the email with exactly this: "{profile.custom_closing}"')
        if profile.custom_system_prompt:
            parts.append(f"CUSTOM INSTRUCTIONS FROM THE USER (FOLLOW THESE CLOSELY):\n{profile.custom_system_prompt}")
        parts.append(OUTPUT_FORMAT)
        return "\n\n".join(parts)

    @staticmethod
    def _user_prompt(job, profile, resume, template: Optional[EmailTemplate]) -> str:
        skills = ", ".join(job.skills or []) or "Not listed"
        lines = [
            "JOB DETAILS:",
            f"Title: {job.title}",
            f"Company: {job.company}",
            f"Location: {job.location or 'Not specified'}",
        ]
        if job.salary:
            lines.append(f"Salary: {job.salary}")
        lines.append(f"Skills Required: {skills}")
        lines.append(f"Description: {(job.description or 'No description available')[:2000]}")

        lines += ["", "CANDIDATE PROFILE:", f"Name: {profile.full_name}"]
        if profile.experience_level:
            lines.append(f"Experience: {profile.experience_level}")
        if profile.include_linkedin and profile.linkedin_url:
            lines.append(f"LinkedIn: {profile.linkedin_url}")
        if profile.include_github and profile.github_url:
            lines.append(f"GitHub: {profile.github_url}")
        if profile.include_portfolio and profile.portfolio_url:
            lines.append(f"Portfolio: {profile.portfolio_url}")

        lines += [
            "",
            f'MATCHED RESUME: "{resume.name}"',
            f"Skills: {', '.join(resume.detected_skills or []) or 'Not specified'}",
            f"Content Preview: {(resume.content or '')[:1500]}",
        ]
        if template is not None and template.body:
            lines += [
                "",
                "USER'S PREFERRED TEMPLATE STYLE (use as inspiration, not copy):",
                f"Subject: {template.subject or ''}",
                f"Body: {template.body[:500]}",
            ]
        lines += ["", "Generate the application email now. Return ONLY JSON."]
        return "\n".join(lines)


def replace_placeholders(text: str, job, profile) -> str:
    values = {
        "company": job.company or "",
        "position": job.title or "",
        "name": profile.full_name or "",
        "your name": profile.full_name or "",
        "location": job.location or "",
        "salary": job.salary or "",
    }
    for key, value in values.items():
        # Callable replacement: values are literal text, backslashes included.
        text = re.sub(r"\{\{\s*" + key + r"\s*\}\}", lambda _m, v=value: v, text, flags=re.IGNORECASE)
        text = re.sub(r"\[" + key + r"\]", lambda _m, v=value: v, text, flags=re.IGNORECASE)
    return text
