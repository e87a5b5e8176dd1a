"""Shared test fixtures: model responses in the shapes we see in practice."""

from __future__ import annotations

import random
import string

import pytest

from src.models.defaults import get_default_shape


@pytest.fixture
def skills_default() -> dict:
    return get_default_shape("skills")


@pytest.fixture
def job_default() -> dict:
    return get_default_shape("job_analysis")


@pytest.fixture
def resume_default() -> dict:
    return get_default_shape("resume_analysis")


@pytest.fixture
def fenced_response() -> str:
    """Valid JSON inside a markdown fence, with a chatty preamble."""
    return (
        "Sure! Here is the analysis you asked for:\n\n"
        "```json\n"
        "{\n"
        '  "technical": ["Python", "PostgreSQL"],\n'
        '  "soft": ["Communication"]\n'
        "}\n"
        "```\n"
        "Let me know if you need anything else."
    )


@pytest.fixture
def truncated_job_response() -> str:
    """Job analysis cut off by the output token limit mid-array."""
    return (
        '{\n'
        '  "title": "Backend Engineer",\n'
        '  "company": "Acme",\n'
        '  "requiredSkills": ["Python", "Django", "Post'
    )


@pytest.fixture
def sloppy_resume_response() -> str:
    """Resume analysis with JS-style syntax: bare keys, single quotes, comments."""
    return (
        "{\n"
        "  // extracted from the uploaded resume\n"
        "  skills: {technical: ['Python', 'SQL'], soft: ['Leadership',]},\n"
        "  summary: 'Data engineer with 5 years of experience',\n"
        "  strengths: [Mentoring Teams\n Architecture],\n"
        "}"
    )


@pytest.fixture
def fuzz_corpus() -> list[str]:
    """Seeded random near-JSON strings."""
    rng = random.Random(1337)
    pieces = [
        "{", "}", "[", "]", ":", ",", '"', "'", "\\", "\n", "\t", " ",
        "true", "None", "null", "42", "-1.5e3", "//", "/*", "*/",
        '"skills"', '"technical"', '"soft"', "Python", "\u201c", "\u201d",
        "\x00", "\ufeff",
    ]
    pieces.extend(string.ascii_letters)
    return [
        "".join(rng.choice(pieces) for _ in range(rng.randint(0, 40)))
        for _ in range(300)
    ]
