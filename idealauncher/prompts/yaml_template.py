"""
YAML Template Wrapper - exposes a template's prompts as attributes
"""

from .validation import PromptTemplate


class YAMLTemplateWrapper:
    """
    Prompts are available as upper-case attributes (``SYSTEM``, ``COMPETITORS``)
    and through ``render`` which fills in placeholders.
    """

    def __init__(self, template: PromptTemplate):
        self.template = template
        self._prompts = {
            name: self._interpolate_prompt(text) for name, text in template.prompts.items()
        }
        for name, text in self._prompts.items():
            setattr(self, name.upper(), text)

    def _interpolate_prompt(self, prompt_text: str) -> str:
        """
        Interpolate template-specific requirements into prompt text
        """
        if self.template.special_requirements and '{requirements}' in prompt_text:
            return prompt_text.replace('{requirements}', self.template.special_requirements)
        return prompt_text

    def render(self, prompt_name: str, **values) -> str:
        try:
            text = self._prompts[prompt_name]
        except KeyError:
            raise ValueError(f"Template '{self.template.name}' has no prompt '{prompt_name}'")
        return text.format(**values)

    @property
    def prompt_names(self) -> list:
        return list(self._prompts.keys())

    @property
    def name(self) -> str:
        return self.template.name

    @property
    def description(self) -> str:
        return self.template.description

    @property
    def version(self) -> str:
        return self.template.version

    def get_info(self) -> dict:
        """Get template information"""
        return {
            'name': self.template.name,
            'description': self.template.description,
            'version': self.template.version,
            'author': self.template.author,
            'created_date': self.template.created_date,
            'prompts': self.prompt_names,
        }
