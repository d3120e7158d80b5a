"""
Issue body rendering for new features, using Jinja2 templates.

One layout per feature category; all three share the same slots
(description, effort, acceptance criteria, dependencies, source PRD path)
and an optional "Blocked Features" section.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from .models import NewFeatureRecord


TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

TEMPLATES = {
    "technical": "technical.md.j2",
    "non-technical": "non_technical.md.j2",
    "enabler": "enabler.md.j2",
}


def get_template_env() -> Environment:
    """Get Jinja2 environment for the issue templates."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def format_title(feature: NewFeatureRecord) -> str:
    return f"[{feature.category.upper()}] {feature.title}"


class FeatureRenderer:
    """Renders NewFeatureRecords into markdown issue bodies."""

    def __init__(self, env: Environment | None = None):
        self.env = env or get_template_env()

    def render(self, feature: NewFeatureRecord, document_path: str) -> str:
        template = self.env.get_template(TEMPLATES.get(feature.category, TEMPLATES["technical"]))
        return template.render(
            description=feature.description,
            effort=feature.effort,
            acceptance_criteria=feature.acceptance_criteria,
            dependencies=feature.dependencies,
            blocked_features=feature.blocked_features,
            document_path=document_path,
        )


def render_feature_body(feature: NewFeatureRecord, document_path: str) -> str:
    """Render a feature's issue body with the default template environment."""
    return FeatureRenderer().render(feature, document_path)
