"""Keyword taxonomy used to assign a category to postings that arrive without one."""

DEFAULT_CATEGORY = "Software Engineering"

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Frontend Development": [
        "frontend", "front-end", "front end", "react developer", "vue developer",
        "angular developer", "ui developer", "ui engineer", "react", "vue", "angular",
        "next.js", "nuxt", "svelte", "tailwind", "javascript developer",
        "typescript developer",
    ],
    "Backend Development": [
        "backend", "back-end", "back end", "server-side", "api developer",
        "microservices engineer", "node.js", "express", "django", "flask", "fastapi",
        "spring boot", "laravel", "ruby on rails", "golang developer",
    ],
    "Full Stack Development": ["full stack", "fullstack", "full-stack", "mern", "mean stack"],
    "DevOps / SRE": [
        "devops", "sre", "site reliability", "infrastructure engineer",
        "ci/cd", "platform engineer", "kubernetes", "docker", "terraform",
    ],
    "Machine Learning / AI": [
        "machine learning", "ml engineer", "ai engineer", "deep learning",
        "nlp engineer", "computer vision", "llm", "generative ai",
    ],
    "Data Science": ["data scientist", "data science", "data analyst", "analytics engineer"],
    "Data Engineering": [
        "data engineer", "etl", "data pipeline", "airflow", "big data", "dbt",
        "snowflake", "bigquery",
    ],
    "Mobile Development": [
        "ios developer", "android developer", "react native", "flutter",
        "mobile developer", "mobile engineer", "swift developer", "kotlin developer",
    ],
    "Cybersecurity": ["security engineer", "cybersecurity", "penetration", "infosec", "soc analyst"],
    "Cloud Engineering": ["cloud engineer", "cloud architect", "aws engineer", "azure engineer"],
    "QA / Testing": [
        "qa engineer", "test engineer", "quality assurance", "sdet",
        "test automation", "selenium", "cypress",
    ],
    "UI/UX Design": ["ui/ux", "ux designer", "ui designer", "product designer", "figma"],
    "Product Management": ["product manager", "product owner", "program manager"],
    "Project Management": ["project manager", "scrum master", "agile coach"],
    "Software Engineering": ["software engineer", "software developer", "programmer", "developer"],
    "Sales": ["sales", "account executive", "business development", "inside sales"],
    "Marketing": ["marketing", "seo", "social media", "digital marketing"],
    "Customer Support": ["customer support", "customer success", "help desk", "support agent"],
    "HR": ["human resources", "recruiter", "talent acquisition", "people operations"],
    "Finance": ["finance", "accounting", "bookkeeping", "financial analyst"],
}


def categorize_job(title: str, skills: list[str] | None, description: str | None) -> str:
    """Pick the category whose keywords best cover the posting; title hits count triple."""
    title_lower = (title or "").lower()
    text = f"{title_lower} {' '.join(skills or [])} {(description or '')[:800]}".lower()

    best_category = DEFAULT_CATEGORY
    best_score = 0
    for category, keywords in CATEGORY_KEYWORDS.items():
        score = 0
        for keyword in keywords:
            if keyword in text:
                score += 1
            if keyword in title_lower:
                score += 2
        if score > best_score:
            best_score = score
            best_category = category
    return best_category
