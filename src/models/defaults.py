"""Default value shapes for each kind of model response.

Each shape is the "empty" instance a caller hands to safe_parse(): every
field present, collections empty, strings empty. It doubles as the schema
the partial extractor recovers fields against and as the value returned
when nothing at all could be recovered.

Keys match what the prompts ask the model to emit, so they keep the
model's camelCase spelling.
"""

from __future__ import annotations

import copy
from typing import Any

SKILLS: dict[str, Any] = {
    "technical": [],
    "soft": [],
}

RESUME_ANALYSIS: dict[str, Any] = {
    "skills": {
        "technical": [],
        "soft": [],
    },
    "experience": [],
    "education": [],
    "summary": "",
    "strengths": [],
    "weaknesses": [],
    "projects": [],
}

JOB_ANALYSIS: dict[str, Any] = {
    "title": "",
    "company": "",
    "location": "",
    "jobType": "",
    "requiredSkills": [],
    "preferredSkills": [],
    "responsibilities": [],
    "qualifications": {
        "required": [],
        "preferred": [],
    },
    "experience": {
        "level": "",
        "years": "",
    },
    "education": "",
    "salary": "",
    "benefits": [],
    "summary": "",
    "keywordsDensity": [],
}

SKILL_GAP_ANALYSIS: dict[str, Any] = {
    "matchPercentage": 0,
    "missingSkills": [],
    "missingQualifications": [],
    "missingExperience": [],
    "matchedSkills": [],
    "recommendations": [],
    "summary": "",
}

EXTRACTED_SKILLS: dict[str, Any] = {
    "technical": [],
    "tools": [],
    "frameworks": [],
    "languages": [],
    "databases": [],
    "methodologies": [],
    "platforms": [],
    "other": [],
}

DEFAULT_SHAPES: dict[str, Any] = {
    "object": {},
    "array": [],
    "skills": SKILLS,
    "resume_analysis": RESUME_ANALYSIS,
    "job_analysis": JOB_ANALYSIS,
    "skill_gap_analysis": SKILL_GAP_ANALYSIS,
    "extracted_skills": EXTRACTED_SKILLS,
}


def get_default_shape(name: str) -> Any:
    """Return a fresh copy of the named default shape.

    Raises ValueError for unknown names.
    """
    try:
        shape = DEFAULT_SHAPES[name]
    except KeyError:
        known = ", ".join(sorted(DEFAULT_SHAPES))
        raise ValueError(f"Unknown default shape {name!r} (known: {known})") from None
    return copy.deepcopy(shape)
