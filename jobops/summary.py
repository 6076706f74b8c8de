"""Tailored resume content and project picks using Groq (or fallback template)."""
from __future__ import annotations

import json
import os
from typing import Any

from jobops.log import get_logger
from jobops.models import ResumeProjectSelectionItem, TailoredContent
from jobops.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"


@retry(max_attempts=2, base_delay=2.0, retryable=(Exception,))
def _call_groq(api_key: str, model: str, prompt: str, max_tokens: int = 800) -> str:
    from openai import OpenAI

    client = OpenAI(api_key=api_key, base_url=GROQ_BASE_URL)
    r = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    return (r.choices[0].message.content or "").strip()


def _clean_skills(raw: Any) -> list[dict[str, Any]] | None:
    """Keep only ``{name, keywords}`` groups with a usable name."""
    if not isinstance(raw, list):
        return None
    groups: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        keywords = item.get("keywords")
        groups.append({
            "name": name.strip(),
            "keywords": [k for k in keywords if isinstance(k, str)] if isinstance(keywords, list) else [],
        })
    return groups or None


class SummaryGenerator:
    """Writes the per-job summary, headline and skill groups."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GROQ_API_KEY", "").strip()
        self.model = model or os.environ.get("GROQ_LLM_MODEL", DEFAULT_MODEL).strip()

    def generate(self, job_description: str, profile: dict) -> TailoredContent:
        if not self.api_key:
            log.debug("No GROQ_API_KEY — using template summary")
            return self.fallback(job_description, profile)

        candidate = profile.get("profile", {})
        prompt = f"""Tailor this candidate's resume to the job below.
Reply with JSON only, in this shape:
{{"summary": "<3-4 sentence professional summary>",
  "headline": "<short headline matching the job title>",
  "skills": [{{"name": "<skill group>", "keywords": ["<skill>", "..."]}}]}}

Use only skills the candidate actually has. Put the most relevant groups first.
Do not use placeholders.

Candidate summary: {candidate.get('summary', '')}
Candidate skills: {', '.join(candidate.get('skills', [])[:25])}
Target roles: {', '.join(profile.get('preferred_roles', []))}

Job description (excerpt): {(job_description or '')[:4000]}"""
        try:
            data = json.loads(_call_groq(self.api_key, self.model, prompt))
            if not isinstance(data, dict):
                raise ValueError("reply is not a JSON object")
            content = TailoredContent(
                summary=(data.get("summary") or "").strip() or None,
                headline=(data.get("headline") or "").strip() or None,
                skills=_clean_skills(data.get("skills")),
            )
            log.info("Tailored summary generated")
            return content
        except Exception as exc:
            log.warning("Summary generation failed (%s), using template", exc)
            return self.fallback(job_description, profile)

    def fallback(self, job_description: str, profile: dict) -> TailoredContent:
        candidate = profile.get("profile", {})
        roles = profile.get("preferred_roles", [])
        skills = candidate.get("skills", [])
        desc = (job_description or "").lower()
        relevant = [s for s in skills if s.lower() in desc] or list(skills)
        return TailoredContent(
            summary=candidate.get("summary") or None,
            headline=candidate.get("headline") or (roles[0] if roles else None),
            skills=[{"name": "Core Skills", "keywords": relevant[:12]}] if relevant else None,
        )

    def pick_project_ids(
        self,
        job_description: str,
        eligible: list[ResumeProjectSelectionItem],
        desired: int,
    ) -> list[str]:
        """At most *desired* ids, all drawn from *eligible*; catalog order on fallback."""
        pool = [p.id for p in eligible]
        if desired <= 0 or not pool:
            return []
        if not self.api_key:
            return pool[:desired]

        catalog = "\n".join(
            f"- id={p.id} | {p.name} | {p.date} | {p.summary_text[:300]}" for p in eligible
        )
        prompt = f"""Pick the {desired} projects that best support an application for this job.
Reply with JSON only: {{"selectedProjectIds": ["<id>", ...]}}, best first,
using ids from the list exactly as written.

Projects:
{catalog}

Job description (excerpt): {(job_description or '')[:4000]}"""
        try:
            data = json.loads(_call_groq(self.api_key, self.model, prompt, max_tokens=200))
            raw = data.get("selectedProjectIds") if isinstance(data, dict) else None
            if not isinstance(raw, list):
                raise ValueError("selectedProjectIds missing")
            if not all(isinstance(i, str) for i in raw):
                raise ValueError("selectedProjectIds must be strings")
            allowed = set(pool)
            picked = [i for i in dict.fromkeys(raw) if i in allowed]
        except Exception as exc:
            log.warning("Project selection failed (%s), using catalog order", exc)
            return pool[:desired]
        return picked[:desired]
