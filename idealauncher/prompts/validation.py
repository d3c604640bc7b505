"""
Validation for YAML prompt templates
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, validator

PLACEHOLDER_RE = re.compile(r"(?<!\{)\{([a-z_][a-z0-9_]*)\}(?!\})")


class PromptTemplate(BaseModel):
    """Complete prompt template structure"""
    name: str = Field(..., description="Human-readable name of the template")
    description: str = Field(..., description="What the prompts in this template produce")
    version: str = Field(..., description="Template version (semantic versioning)")
    author: str = Field(..., description="Template author")
    created_date: str = Field(..., description="Creation date (YYYY-MM-DD)")

    prompts: Dict[str, str] = Field(..., description="Prompt texts keyed by name")
    # Placeholders each prompt is expected to contain
    placeholders: Dict[str, List[str]] = Field(default_factory=dict)
    special_requirements: Optional[str] = Field(None, description="Text interpolated as {requirements}")

    @validator('version')
    def validate_version(cls, v):
        """Validate semantic versioning format"""
        parts = v.split('.')
        if len(parts) != 3:
            raise ValueError('Version must be in format X.Y.Z')
        for part in parts:
            if not part.isdigit():
                raise ValueError('Version parts must be numeric')
        return v

    @validator('created_date')
    def validate_date(cls, v):
        """Validate date format"""
        try:
            datetime.strptime(v, '%Y-%m-%d')
            return v
        except ValueError:
            raise ValueError('Date must be in YYYY-MM-DD format')

    @validator('prompts')
    def validate_prompts(cls, v):
        if not v:
            raise ValueError('At least one prompt is required')
        empty = [name for name, text in v.items() if not text or not text.strip()]
        if empty:
            raise ValueError(f'Empty prompts: {empty}')
        return v


class TemplateValidator:
    """Validates YAML prompt templates"""

    @staticmethod
    def load_and_validate(file_path: str) -> PromptTemplate:
        """Load and validate a YAML template file"""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML syntax: {e}")
        except FileNotFoundError:
            raise ValueError(f"Template file not found: {file_path}")

        return TemplateValidator.validate_dict(data)

    @staticmethod
    def validate_dict(data: Dict[str, Any]) -> PromptTemplate:
        """Validate a template from a dictionary"""
        if not isinstance(data, dict):
            raise ValueError("Template validation failed: expected a mapping")
        try:
            return PromptTemplate(**data)
        except Exception as e:
            raise ValueError(f"Template validation failed: {e}")

    @staticmethod
    def check_prompt_interpolation(template: PromptTemplate) -> List[str]:
        """Declared placeholders that a prompt does not contain"""
        warnings = []
        for prompt_name, expected in template.placeholders.items():
            text = template.prompts.get(prompt_name)
            if text is None:
                warnings.append(f"Placeholders declared for unknown prompt '{prompt_name}'")
                continue
            found = set(PLACEHOLDER_RE.findall(text))
            for placeholder in expected:
                if placeholder not in found:
                    warnings.append(f"{prompt_name} prompt missing {{{placeholder}}} placeholder")

        for prompt_name, text in template.prompts.items():
            if '{requirements}' in text and not template.special_requirements:
                warnings.append(f"{prompt_name} references requirements but it's not defined")
        return warnings


def validate_template_file(file_path: str) -> tuple[PromptTemplate, List[str]]:
    """
    Validate a template file and return the template and any warnings

    Returns:
        tuple: (validated_template, list_of_warnings)
    """
    template = TemplateValidator.load_and_validate(file_path)
    warnings = TemplateValidator.check_prompt_interpolation(template)

    return template, warnings
