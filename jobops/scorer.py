"""Score postings 0–100 against the candidate profile."""
from __future__ import annotations

import json
import os
import re
from typing import Callable, Protocol

from jobops.log import get_logger
from jobops.models import Job, ScoreResult
from jobops.retry import retry

log = get_logger(__name__)


def _normalize(s: str | None) -> str:
    return (s or "").lower().strip()


LOCATION_ALIASES: dict[str, list[str]] = {
    "london": ["london", "greater london"],
    "remote": ["remote", "anywhere", "work from home", "wfh"],
    "bangalore": ["bangalore", "bengaluru"],
    "new york": ["new york", "nyc"],
}

ENTRY_LEVEL_PHRASES: list[str] = [
    "graduate", "entry level", "entry-level", "no experience", "internship",
    "placement", "0-1 years", "0-2 years", "junior",
]

# Titles that signal a level well above an individual contributor
OVER_LEVEL_TITLES: list[str] = [
    "director", "vice president", "vp ", "vp,", "chief ",
    "head of", "cto", "managing director", "general manager",
]

SENIORITY_TERMS: dict[str, list[str]] = {
    "graduate": ["graduate", "entry level", "entry-level", "junior", "trainee"],
    "junior": ["junior", "graduate", "associate", "entry level"],
    "intermediate": ["mid-level", "mid level", "3+", "experienced"],
    "senior": ["senior", "lead", "principal", "staff", "5+", "8+"],
}

# Minimum token length when expanding compound skills, so short tokens like
# "ai" or "api" do not match everything.
_MIN_SKILL_TOKEN_LEN = 4


def _expand_locations(locations: list[str]) -> list[str]:
    expanded: list[str] = []
    for loc in locations:
        key = loc.lower().strip()
        expanded.extend(LOCATION_ALIASES.get(key, [key]))
    return expanded


def _expand_skills(raw_skills: list[str]) -> list[str]:
    """Break compound skills into matchable tokens, filtering short noise."""
    tokens: list[str] = []
    for s in raw_skills:
        low = s.lower()
        tokens.append(low)
        for part in re.findall(r"[a-z0-9]+(?:[\s-][a-z0-9]+)*", low):
            part = part.strip()
            if part and part != low and len(part) >= _MIN_SKILL_TOKEN_LEN:
                tokens.append(part)
    return list(dict.fromkeys(tokens))


def _is_entry_level_only(text: str) -> bool:
    return any(p in text for p in ENTRY_LEVEL_PHRASES) and not any(
        x in text for x in ("senior", "5+", "8+", "10+", "lead")
    )


def _is_over_level(title: str, profile_level: str) -> bool:
    if profile_level not in ("graduate", "junior", "intermediate", "senior"):
        return False
    t = _normalize(title)
    return any(tag in t for tag in OVER_LEVEL_TITLES)


def _word_overlap_ratio(role: str, text: str) -> float:
    """Fraction of words in *role* that appear in *text*.

    Needs at least 2 overlapping words for multi-word roles, so "engineer"
    alone does not match every engineering title.
    """
    role_words = set(role.lower().split())
    text_words = set(text.lower().split())
    if not role_words:
        return 0.0
    overlap = role_words & text_words
    if len(overlap) < 2 and len(role_words) > 1:
        return 0.0
    return len(overlap) / len(role_words)


def _best_role_match(
    title: str,
    desc: str,
    core_roles: list[str],
    stretch_roles: list[str],
) -> tuple[float, str, str]:
    """Return (points, role, tier) for the strongest role match.

      - role in job TITLE (exact substring)         core 40 / stretch 20
      - role in title (word overlap >= 60%)         core 35 / stretch 18
      - role in description only                    core 15 / stretch 8
    """
    title_norm = _normalize(title)
    desc_norm = _normalize(desc)
    best = (0.0, "", "")
    for tier, roles, weights in (
        ("core", core_roles, (40.0, 35.0, 15.0)),
        ("stretch", stretch_roles, (20.0, 18.0, 8.0)),
    ):
        for role_raw in roles:
            role = role_raw.lower()
            if role in title_norm:
                points = weights[0]
            elif _word_overlap_ratio(role, title_norm) >= 0.6:
                points = weights[1]
            elif role in desc_norm:
                points = weights[2]
            else:
                continue
            if points > best[0]:
                best = (points, role_raw, tier)
    return best


class Scorer(Protocol):
    def score(self, job: Job, profile: dict) -> ScoreResult: ...


class KeywordScorer:
    """Role/skill/seniority/location heuristic; no network calls."""

    def score(self, job: Job, profile: dict) -> ScoreResult:
        reasons: list[str] = []
        desc = _normalize(job.job_description)
        title_norm = _normalize(job.title)
        full_text = desc + " " + title_norm

        candidate = profile.get("profile", {})
        skills = _expand_skills(candidate.get("skills", []))
        core_roles = list(profile.get("core_roles", []))
        stretch_roles = list(profile.get("stretch_roles", []))
        locations = _expand_locations(profile.get("locations", []))
        level = candidate.get("level", "graduate")

        if _is_over_level(job.title, level):
            return ScoreResult(score=0, reason="Filtered: seniority above profile level")
        if level == "senior" and _is_entry_level_only(full_text):
            return ScoreResult(score=0, reason="Filtered: entry-level role for a senior profile")

        role_points, matched_role, role_tier = _best_role_match(
            job.title, job.job_description or "", core_roles, stretch_roles,
        )
        if matched_role:
            reasons.append(f"Role match ({role_tier}): {matched_role}")

        matched_skills = list(dict.fromkeys(s for s in skills if s in full_text))
        if matched_skills:
            reasons.append("Skills: " + ", ".join(matched_skills[:5]))

        has_seniority = any(t in full_text for t in SENIORITY_TERMS.get(level, []))
        if has_seniority:
            reasons.append("Seniority level fit")

        has_location = any(alias in _normalize(job.location) for alias in locations)
        if has_location:
            reasons.append("Location match")

        score = role_points                                  # 0 – 40
        score += min(5.0 * len(matched_skills), 25.0)        # 0 – 25
        if has_seniority:
            score += 10.0
        if has_location:
            score += 15.0
        if len(matched_skills) >= 3 and role_tier == "core":
            score += 5.0
            reasons.append("Strong skill overlap")

        score = min(score, 100.0)
        if not score and (matched_skills or core_roles or stretch_roles):
            score = 10.0

        return ScoreResult(score=round(score), reason="; ".join(reasons) or "No strong signals")


@retry(max_attempts=2, base_delay=2.0, retryable=(Exception,))
def _call_groq(api_key: str, model: str, prompt: str) -> str:
    from openai import OpenAI

    client = OpenAI(api_key=api_key, base_url="https://api.groq.com/openai/v1")
    r = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=300,
        response_format={"type": "json_object"},
    )
    return (r.choices[0].message.content or "").strip()


class LlmScorer:
    """Asks the LLM for ``{"score": 0-100, "reason": "..."}``.

    Falls back to :class:`KeywordScorer` when no key is set or the reply
    cannot be used.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GROQ_API_KEY", "").strip()
        self.model = model or os.environ.get("GROQ_LLM_MODEL", "llama-3.3-70b-versatile").strip()
        self.fallback = KeywordScorer()

    def score(self, job: Job, profile: dict) -> ScoreResult:
        if not self.api_key:
            return self.fallback.score(job, profile)
        candidate = profile.get("profile", {})
        prompt = f"""Rate how well this candidate fits the job on a 0-100 scale.
Reply with JSON only: {{"score": <integer 0-100>, "reason": "<one or two sentences>"}}.

Candidate summary: {candidate.get('summary', '')}
Candidate skills: {', '.join(candidate.get('skills', [])[:15])}
Target roles: {', '.join(profile.get('preferred_roles', []))}

Job title: {job.title}
Employer: {job.employer}
Location: {job.location or 'n/a'}
Job description (excerpt): {(job.job_description or '')[:3000]}"""
        try:
            data = json.loads(_call_groq(self.api_key, self.model, prompt))
            score = max(0.0, min(100.0, float(data["score"])))
            return ScoreResult(score=round(score), reason=str(data.get("reason", "")).strip())
        except Exception as exc:
            log.warning("LLM scoring failed for %s (%s), using keyword scorer", job.id, exc)
            return self.fallback.score(job, profile)


def get_scorer(kind: str | None = None) -> Scorer:
    kind = (kind or os.environ.get("JOBOPS_SCORER", "")).strip().lower()
    if kind == "llm" or (not kind and os.environ.get("GROQ_API_KEY", "").strip()):
        return LlmScorer()
    return KeywordScorer()


def score_and_rank(
    jobs: list[Job],
    profile: dict,
    scorer: Scorer,
    on_scored: Callable[[int, Job, ScoreResult], None] | None = None,
) -> list[tuple[Job, ScoreResult]]:
    """Score every job, calling *on_scored* as each result arrives; best first."""
    results: list[tuple[Job, ScoreResult]] = []
    for index, job in enumerate(jobs, start=1):
        result = scorer.score(job, profile)
        if on_scored is not None:
            on_scored(index, job, result)
        results.append((job, result))
    results.sort(key=lambda pair: -pair[1].score)
    log.info("Scored %d jobs", len(results))
    return results
