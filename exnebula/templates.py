"""Static template tables: mentor canned responses and learning paths.

Defaults live here; operators may override them with a TOML file:

    [mentor]
    general = ["..."]

    [mentor.goals]
    "Data Scientist" = ["...", "..."]

    [paths."Data Scientist"]
    title = "..."
    description = "..."
    modules = ["...", "..."]
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .constants import DEFAULT_CAREER_GOAL


@dataclass(frozen=True)
class MentorTables:
    by_goal: Mapping[str, tuple[str, ...]]
    general: tuple[str, ...]
    default_goal: str = DEFAULT_CAREER_GOAL


@dataclass(frozen=True)
class LearningPath:
    title: str
    description: str
    modules: tuple[str, ...]
    progress: int = 0


@dataclass(frozen=True)
class Templates:
    mentor: MentorTables
    paths: Mapping[str, LearningPath] = field(default_factory=dict)


DEFAULT_MENTOR_TABLES = MentorTables(
    by_goal=MappingProxyType(
        {
            "AI Engineer": (
                "For AI engineering, focus on Python and TensorFlow first.",
                "Deep learning is crucial. Start with neural network basics.",
                "Computer vision and NLP are key AI engineering skills.",
            ),
            "Data Scientist": (
                "Statistics and Python are fundamental for data science.",
                "Master pandas, matplotlib, and scikit-learn.",
                "Practice with real datasets to build your portfolio.",
            ),
            "ML Engineer": (
                "MLOps is essential for ML engineers.",
                "Learn Docker, Kubernetes for model deployment.",
                "Focus on production-ready ML systems.",
            ),
        }
    ),
    general=(
        "Great question! For AI engineering, start with Python fundamentals.",
        "Based on your goals, I recommend focusing on machine learning basics first.",
        "That's a smart approach! Let's break this into smaller learning modules.",
        "Perfect! For your learning style, try hands-on projects alongside theory.",
        "Excellent question! This is fundamental to your chosen career path.",
    ),
)


DEFAULT_LEARNING_PATHS: Mapping[str, LearningPath] = MappingProxyType(
    {
        "AI Engineer": LearningPath(
            title="AI Engineering Mastery Path",
            description="Complete roadmap to become an AI Engineer",
            modules=(
                "Python Programming Fundamentals",
                "Mathematics for AI",
                "Machine Learning Basics",
                "Deep Learning with Neural Networks",
                "Computer Vision",
                "Natural Language Processing",
                "AI Project Portfolio",
            ),
        ),
        "Data Scientist": LearningPath(
            title="Data Science Professional Path",
            description="Comprehensive path to master data science",
            modules=(
                "Statistics and Probability",
                "Python for Data Science",
                "Data Manipulation with Pandas",
                "Data Visualization",
                "Machine Learning Algorithms",
                "SQL and Databases",
                "Data Science Capstone Project",
            ),
        ),
        "ML Engineer": LearningPath(
            title="Machine Learning Engineering Path",
            description="Technical path to deploy ML models in production",
            modules=(
                "Programming for ML",
                "Machine Learning Fundamentals",
                "Model Training and Validation",
                "MLOps and Model Deployment",
                "Cloud Platforms for ML",
                "Production ML Systems",
            ),
        ),
    }
)


DEFAULT_TEMPLATES = Templates(mentor=DEFAULT_MENTOR_TABLES, paths=DEFAULT_LEARNING_PATHS)


def learning_path_for(
    goal: str | None, paths: Mapping[str, LearningPath] = DEFAULT_LEARNING_PATHS
) -> LearningPath:
    """Path template for ``goal``, falling back to the default career goal."""
    if goal is not None and goal in paths:
        return paths[goal]
    return paths[DEFAULT_CAREER_GOAL]


def _string_list(value, what: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a list of strings")
    out = tuple(str(x) for x in value if isinstance(x, str) and x.strip())
    if not out:
        raise ValueError(f"{what} must not be empty")
    return out


def _parse_templates(doc, base: Templates) -> Templates:
    by_goal = dict(base.mentor.by_goal)
    general = base.mentor.general
    paths = dict(base.paths)

    mentor = doc.get("mentor")
    if mentor is not None:
        if not isinstance(mentor, dict):
            raise ValueError("[mentor] must be a table")
        if "general" in mentor:
            general = _string_list(mentor.get("general"), "mentor.general")
        goals = mentor.get("goals")
        if goals is not None:
            if not isinstance(goals, dict):
                raise ValueError("[mentor.goals] must be a table")
            for goal, responses in goals.items():
                by_goal[str(goal)] = _string_list(responses, f"mentor.goals.{goal}")

    raw_paths = doc.get("paths")
    if raw_paths is not None:
        if not isinstance(raw_paths, dict):
            raise ValueError("[paths] must be a table")
        for goal, raw in raw_paths.items():
            if not isinstance(raw, dict):
                raise ValueError(f"[paths.{goal}] must be a table")
            title = raw.get("title")
            if not isinstance(title, str) or not title.strip():
                raise ValueError(f"paths.{goal}.title is required")
            description = raw.get("description")
            if not isinstance(description, str):
                description = ""
            paths[str(goal)] = LearningPath(
                title=str(title),
                description=str(description),
                modules=_string_list(raw.get("modules"), f"paths.{goal}.modules"),
            )

    if base.mentor.default_goal not in by_goal or base.mentor.default_goal not in paths:
        raise ValueError(f"templates must keep the {base.mentor.default_goal!r} tables")

    return Templates(
        mentor=MentorTables(
            by_goal=MappingProxyType(by_goal),
            general=general,
            default_goal=base.mentor.default_goal,
        ),
        paths=MappingProxyType(paths),
    )


def load_templates(
    path: str | None, *, base: Templates = DEFAULT_TEMPLATES
) -> tuple[Templates, str | None]:
    """Load template overrides from ``path`` on top of ``base``.

    Returns ``(templates, error)``. On any problem the base tables come back
    unchanged together with a description of what went wrong.
    """
    if not path:
        return base, None
    if not os.path.exists(path):
        return base, f"templates file not found: {path}"

    from tomlkit import parse
    from tomlkit.exceptions import TOMLKitError

    try:
        with open(path, encoding="utf-8") as f:
            doc = parse(f.read()).unwrap()
    except (OSError, TOMLKitError) as e:
        return base, f"failed to parse templates: {e}"

    try:
        return _parse_templates(doc, base), None
    except ValueError as e:
        return base, f"invalid templates: {e}"

