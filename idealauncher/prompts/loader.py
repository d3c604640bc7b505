"""
Utility functions for loading prompt templates by name
"""

import logging
from pathlib import Path
from typing import Optional

from .validation import validate_template_file
from .yaml_template import YAMLTemplateWrapper

logger = logging.getLogger(__name__)


def get_prompts(template_name: str) -> YAMLTemplateWrapper:
    """
    Load the prompts for one flow (chat, research, planning, export)

    Raises:
        ValueError: when the template is missing or invalid
    """
    yaml_path = _get_yaml_template_path(template_name)
    if yaml_path is None or not yaml_path.exists():
        raise ValueError(f"No prompts found for template: {template_name}")

    template, warnings = validate_template_file(str(yaml_path))
    if warnings:
        logger.warning(f"Template warnings for {template_name}: {warnings}")
    return YAMLTemplateWrapper(template)


def _get_yaml_template_path(template_name: str) -> Optional[Path]:
    """Get the path to a YAML template file"""
    if not template_name or "/" in template_name or "\\" in template_name:
        return None
    return Path(__file__).parent / "templates" / f"{template_name}.yaml"


def list_available_templates() -> dict:
    """
    List all prompt templates

    Returns:
        dict: Template information keyed by template name
    """
    templates = {}
    templates_dir = Path(__file__).parent / "templates"
    if not templates_dir.exists():
        return templates

    for yaml_file in sorted(templates_dir.glob("*.yaml")):
        try:
            template, warnings = validate_template_file(str(yaml_file))
            templates[yaml_file.stem] = {
                **YAMLTemplateWrapper(template).get_info(),
                'warnings': warnings,
                'path': str(yaml_file),
            }
        except ValueError as e:
            templates[yaml_file.stem] = {
                'name': yaml_file.stem,
                'description': 'Invalid template',
                'error': str(e),
                'path': str(yaml_file),
            }
    return templates


def validate_template(template_name: str) -> tuple[bool, list]:
    """
    Validate a specific template

    Returns:
        tuple: (is_valid, list_of_warnings_or_errors)
    """
    yaml_path = _get_yaml_template_path(template_name)
    if yaml_path is None or not yaml_path.exists():
        return False, [f"Template not found: {template_name}"]
    try:
        _, warnings = validate_template_file(str(yaml_path))
        return True, warnings
    except ValueError as e:
        return False, [str(e)]
