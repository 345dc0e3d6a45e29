from __future__ import annotations
import re
from html import unescape

# Technology vocabulary used to infer skills from free text.
TECH_TERMS = [
    "react", "vue", "angular", "next.js", "node.js", "express", "nestjs",
    "typescript", "javascript", "python", "java", "c#", "go", "rust", "ruby",
    "php", "swift", "kotlin", "flutter", "react native",
    "aws", "azure", "gcp", "docker", "kubernetes", "terraform",
    "postgresql", "mysql", "mongodb", "redis", "elasticsearch",
    "graphql", "rest", "microservices", "ci/cd", "git",
    "tailwind", "sass", "html", "css", "figma",
    "machine learning", "deep learning", "nlp", "tensorflow", "pytorch",
    "django", "flask", "fastapi", "spring", "laravel", ".net",
]

# Common skill synonyms for matching
SKILL_SYNONYMS = {
    "javascript": {"js", "ecmascript"},
    "typescript": {"ts"},
    "react": {"reactjs", "react.js"},
    "node.js": {"node", "nodejs"},
    "vue": {"vuejs", "vue.js"},
    "postgresql": {"postgres"},
    "mongodb": {"mongo"},
    "kubernetes": {"k8s"},
    "gcp": {"google cloud"},
    "machine learning": {"ml"},
}

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def strip_tags(html: str) -> str:
    """Remove HTML tags and decode entities."""
    text = _TAG_RE.sub(" ", html)
    text = unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def sanitize_text(value: str | None) -> str | None:
    """Strip markup and collapse whitespace; empty results become None."""
    if value is None:
        return None
    cleaned = strip_tags(str(value))
    return cleaned or None


def contains_term(text: str, term: str) -> bool:
    """Case-insensitive containment that respects word edges for short terms."""
    text = text.lower()
    term = term.lower().strip()
    if not term:
        return False
    if len(term) <= 3 or re.fullmatch(r"[a-z0-9 ]+", term):
        pattern = r"(?<![a-z0-9])" + re.escape(term) + r"(?![a-z0-9])"
        return re.search(pattern, text) is not None
    return term in text


def extract_tech_terms(text: str) -> list[str]:
    """Return vocabulary terms mentioned in text, in vocabulary order."""
    if not text:
        return []
    found = []
    for term in TECH_TERMS:
        aliases = {term} | SKILL_SYNONYMS.get(term, set())
        if any(contains_term(text, alias) for alias in aliases):
            found.append(term)
    return found


def normalize_skill(skill: str) -> str:
    """Normalize a skill name for comparison."""
    skill = skill.lower().strip()
    for canonical, aliases in SKILL_SYNONYMS.items():
        if skill in aliases:
            return canonical
    return skill
