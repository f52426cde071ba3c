"""
Cover letter drafting for accepted swipes.

The generator is best-effort: whatever goes wrong with the text provider, it
hands back text that can be stored on the application. A result is tagged as
``ok`` or ``degraded`` so callers can log and count failures even though only
the text is persisted.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from google import genai
from google.genai import types

from errors import ExternalServiceDegraded
from resume_text import NO_RESUME

log = logging.getLogger(__name__)

FAILURE_MARKER = "Failed to generate cover letter"
NOT_CONFIGURED_MESSAGE = f"{FAILURE_MARKER}: the AI provider is not configured."

PROMPT_TEMPLATE = """\
**Role:** You are a helpful career assistant. Your task is to draft a professional and compelling cover letter for a job application.

**Objective:** Write a cover letter from the applicant, {name}, to the hiring manager at {company} for the position of {title}.

**Job Details:**
- **Position:** {title}
- **Company:** {company}
- **Description:** {description}

**Applicant's Information:**
- **Name:** {name}
- **Skills Listed in Profile:** {skills}
- **Full Resume Content:**
---
{resume}
---

**Instructions:**
1. **Synthesize, Do Not Just List:** Weave the applicant's skills and experiences from their resume into a narrative that directly addresses the requirements in the job description.
2. **Tone:** The tone should be professional, enthusiastic, and confident.
3. **Structure:** Follow a standard cover letter format (Introduction, Body Paragraphs, Conclusion).
4. **Customization:** Make it clear that the applicant has read the job description and is genuinely interested in this specific role at this specific company.
5. **Output:** Provide only the text of the cover letter, starting with a professional salutation. No preamble or commentary.
"""


@dataclass(frozen=True)
class GenerationResult:
    text: str
    degraded_reason: Optional[str] = None

    @classmethod
    def ok(cls, text):
        return cls(text=text)

    @classmethod
    def degraded(cls, reason, text=None):
        if text is None:
            text = f"{FAILURE_MARKER} due to an AI service error ({reason}). Please try again."
        return cls(text=text, degraded_reason=reason)

    @property
    def is_degraded(self):
        return self.degraded_reason is not None


class UnconfiguredClient:
    """Stands in for the text provider when no API key is set."""

    configured = False

    def generate(self, prompt):
        raise ExternalServiceDegraded("AI provider is not configured")

    def list_models(self):
        return []


class GeminiClient:
    """Google Gemini text generation through the google-genai SDK."""

    configured = True

    def __init__(self, api_key, model="gemini-2.0-flash", timeout=60):
        self.model = model
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def generate(self, prompt):
        try:
            response = self._client.models.generate_content(model=self.model, contents=prompt)
            text = response.text
        except Exception as exc:
            # The SDK raises its own API errors as well as transport errors
            raise ExternalServiceDegraded(f"{type(exc).__name__}: {exc}") from exc
        return (text or "").strip()

    def list_models(self):
        return [m.name for m in self._client.models.list()]


def build_prompt(user, job, resume_text):
    skills = ", ".join(sorted(user.skill_set)) or "None listed"
    return PROMPT_TEMPLATE.format(
        name=user.name,
        skills=skills,
        resume=resume_text,
        title=job.title,
        company=job.company,
        description=job.description,
    )


class CoverLetterGenerator:
    def __init__(self, client, resume_loader):
        """
        Args:
            client: text provider exposing ``generate(prompt) -> str``
            resume_loader: callable turning a stored resume reference into text
        """
        self.client = client
        self.resume_loader = resume_loader

    @property
    def configured(self):
        return getattr(self.client, "configured", True)

    def generate(self, user, job):
        """Draft a cover letter for ``user`` applying to ``job``. Never raises."""
        if not self.configured:
            log.warning("Cover letter skipped for user %s: AI provider not configured", user.id)
            return GenerationResult.degraded("not configured", NOT_CONFIGURED_MESSAGE)

        resume_text = self.resume_loader(user.resume_url) if user.resume_url else NO_RESUME
        prompt = build_prompt(user, job, resume_text)

        try:
            text = self.client.generate(prompt)
        except ExternalServiceDegraded as exc:
            log.warning(
                "Cover letter generation degraded for user %s, job %s: %s",
                user.id, job.id, exc.message,
            )
            return GenerationResult.degraded(exc.message)

        if not text or not text.strip():
            log.warning("Empty cover letter for user %s, job %s", user.id, job.id)
            return GenerationResult.degraded("empty response from model")

        log.info("Cover letter generated for user %s, job %s", user.id, job.id)
        return GenerationResult.ok(text)
