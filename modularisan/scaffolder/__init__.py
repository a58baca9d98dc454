"""Modularisan scaffolder -- plans and writes feature modules.

Quick usage::

    from modularisan.scaffolder import CreateModuleOptions, ModuleService

    service = ModuleService(config)
    structure = await service.create_module(CreateModuleOptions(name="user-auth"))
"""

from modularisan.scaffolder.modules import (
    CreateComponentOptions,
    CreateModuleOptions,
    ModuleService,
    ModuleStructure,
    append_export_line,
)
from modularisan.scaffolder.templates import TemplateRenderer, template_candidates
from modularisan.scaffolder.writer import ArtifactWriter, GeneratedArtifact

__all__ = [
    "ArtifactWriter",
    "CreateComponentOptions",
    "CreateModuleOptions",
    "GeneratedArtifact",
    "ModuleService",
    "ModuleStructure",
    "TemplateRenderer",
    "append_export_line",
    "template_candidates",
]
