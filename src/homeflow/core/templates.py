"""Template Expander.

Turns a named plan template into concrete, dated task and milestone drafts.
Templates are validated when a library is loaded; expansion itself is a pure
transformation and never touches storage.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date, datetime
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from pydantic import ValidationError

from homeflow.core.dates import add_days, as_date
from homeflow.models.milestone import MilestoneStatus
from homeflow.models.template import MilestoneDraft, PlanDraft, PlanTemplate, TaskDraft

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "standard"


class ConfigurationError(Exception):
    """Raised for fatal reference-data or configuration problems."""


class TemplateError(ConfigurationError):
    """Base class for plan template failures."""


class TemplateNotFoundError(TemplateError):
    """Raised when neither the requested template nor the default exists."""


class InvalidTemplateError(TemplateError):
    """Raised when template data fails schema validation."""


class TemplateSource(ABC):
    """Read-only source of plan templates keyed by plan type."""

    @abstractmethod
    def get(self, name: str) -> PlanTemplate | None:
        """Return the template registered under name, or None."""

    @abstractmethod
    def names(self) -> list[str]:
        """Return all registered template names."""


class TemplateLibrary(TemplateSource):
    """Immutable in-memory template source."""

    def __init__(self, templates: Mapping[str, PlanTemplate]) -> None:
        self._templates = MappingProxyType(dict(templates))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TemplateLibrary:
        """Validate raw template data keyed by plan type.

        Raises:
            InvalidTemplateError: If any template or skeleton is malformed
        """
        if not isinstance(raw, Mapping):
            raise InvalidTemplateError("Template data must be a mapping of plan type to template")

        templates: dict[str, PlanTemplate] = {}
        for name, body in raw.items():
            if not isinstance(body, Mapping):
                raise InvalidTemplateError(f"Template '{name}' must be a mapping")
            try:
                templates[str(name)] = PlanTemplate(name=str(name), **body)
            except (ValidationError, TypeError) as e:
                raise InvalidTemplateError(f"Invalid template '{name}': {e}") from e

        logger.info("Loaded %d plan template(s): %s", len(templates), ", ".join(templates))
        return cls(templates)

    @classmethod
    def from_file(cls, path: Path) -> TemplateLibrary:
        """Load templates from a YAML (or JSON) file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InvalidTemplateError(f"Cannot read templates from {path}: {e}") from e
        return cls.from_mapping(data)

    def get(self, name: str) -> PlanTemplate | None:
        return self._templates.get(name)

    def names(self) -> list[str]:
        return list(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


def load_default_templates() -> TemplateLibrary:
    """Load the plan templates bundled with the package."""
    text = resources.files("homeflow.data").joinpath("plans.yaml").read_text()
    return TemplateLibrary.from_mapping(yaml.safe_load(text) or {})


def resolve_template(name: str | None, source: TemplateSource) -> PlanTemplate:
    """Return the requested template, falling back to the default plan.

    Raises:
        TemplateNotFoundError: If neither name nor the default is defined
    """
    if name:
        template = source.get(name)
        if template is not None:
            return template
        logger.warning("Unknown plan template '%s'; using '%s'", name, DEFAULT_TEMPLATE)

    template = source.get(DEFAULT_TEMPLATE)
    if template is None:
        raise TemplateNotFoundError(
            f"Template '{name}' not found and no '{DEFAULT_TEMPLATE}' template is defined"
        )
    return template


def expand_template(
    name: str | None,
    reference_date: date | datetime,
    source: TemplateSource,
    *,
    project_id: str | None = None,
) -> PlanDraft:
    """Expand a template into dated drafts.

    Args:
        name: Plan type to expand (falls back to the default plan)
        reference_date: "Today" for the expansion; times are dropped
        source: Template source to resolve against
        project_id: Optional project to tag every draft with

    Returns:
        PlanDraft whose drafts all share reference_date as their base

    Raises:
        TemplateNotFoundError: If no usable template exists
    """
    template = resolve_template(name, source)
    base = as_date(reference_date)

    tasks = [
        TaskDraft(
            project_id=project_id,
            title=skeleton.title,
            description=skeleton.description,
            due_date=add_days(base, skeleton.offset_days),
            completed=False,
            diy_guidance=skeleton.diy_guidance,
            cost_savings=skeleton.cost_savings,
            resources=list(skeleton.resources) if skeleton.resources else None,
        )
        for skeleton in template.tasks
    ]
    milestones = [
        MilestoneDraft(
            project_id=project_id,
            title=skeleton.title,
            date=add_days(base, skeleton.offset_days),
            amount=skeleton.amount,
            status=skeleton.status or MilestoneStatus.PENDING,
        )
        for skeleton in template.milestones
    ]

    logger.debug(
        "Expanded template '%s' from %s: %d task(s), %d milestone(s)",
        template.name,
        base,
        len(tasks),
        len(milestones),
    )
    return PlanDraft(
        template=template.name,
        reference_date=base,
        tasks=tasks,
        milestones=milestones,
    )
