"""System prompt assembly for document analysis."""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from .config import CustomFieldDefinition, PromptSettings

CUSTOM_FIELDS_PLACEHOLDER = "%CUSTOMFIELDS%"

DEFAULT_SYSTEM_PROMPT = (
    "You are a document analysis assistant. Read the document and extract "
    "its metadata."
)

DEFAULT_MUST_HAVE_PROMPT = """Return the result EXCLUSIVELY as a JSON object in this format:
{
  "title": "xxxxx",
  "correspondent": "xxxxxxxx",
  "tags": ["Tag1", "Tag2", "Tag3", "Tag4"],
  "document_type": "Invoice/Contract/...",
  "document_date": "YYYY-MM-DD",
  "language": "en/de/es/...",
  %CUSTOMFIELDS%
}"""

DEFAULT_PREDEFINED_TAGS_PROMPT = """Return the result EXCLUSIVELY as a JSON object. Only use tags from the predefined list.
{
  "title": "xxxxx",
  "correspondent": "xxxxxxxx",
  "tags": ["Tag1", "Tag2"],
  "document_date": "YYYY-MM-DD",
  "language": "en/de/es/..."
}"""

PREDEFINED_TAGS_INSTRUCTION = (
    "Take these tags and try to match one or more to the document content.\n\n"
)

CUSTOM_FIELD_VALUE_HINT = "Fill in the value based on your analysis"


@dataclass
class AssembledPrompt:
    """System prompt plus any additional prompt messages."""

    system_prompt: str
    additional_prompts: list[str]

    def messages(self, content: str) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self.system_prompt}]
        for prompt in self.additional_prompts:
            if prompt:
                messages.append({"role": "system", "content": prompt})
        messages.append({"role": "user", "content": content})
        return messages


def names_of(items: Iterable[Any] | None) -> list[str]:
    """Names of taxonomy entries given as {id, name} dicts or plain strings."""
    names = []
    for item in items or []:
        if isinstance(item, dict):
            name = item.get("name")
        else:
            name = getattr(item, "name", item)
        if name:
            names.append(str(name))
    return names


def build_custom_fields_block(definitions: Iterable["CustomFieldDefinition"]) -> str:
    """Render the custom_fields section of the response schema.

    Each configured field becomes an indexed entry naming the field and
    asking the model to fill in its value.
    """
    template = {
        str(index): {"field_name": definition.value, "value": CUSTOM_FIELD_VALUE_HINT}
        for index, definition in enumerate(definitions)
    }
    rendered = json.dumps(template, indent=2)
    indented = "\n".join("    " + line for line in rendered.split("\n"))
    return '"custom_fields": ' + indented


def render_must_have_prompt(settings: "PromptSettings") -> str:
    return settings.must_have_prompt.replace(
        CUSTOM_FIELDS_PLACEHOLDER,
        build_custom_fields_block(settings.custom_fields),
    )


def build_system_prompt(
    settings: "PromptSettings",
    existing_tags: Iterable[Any] | None = None,
    existing_correspondents: Iterable[Any] | None = None,
    custom_prompt: str | None = None,
) -> AssembledPrompt:
    """Assemble the prompt for a document analysis.

    Precedence, lowest to highest: base prompt with the response schema
    (optionally prefixed by the existing taxonomy), the predefined-tags
    instruction, and a caller-supplied custom prompt.
    """
    must_have = render_must_have_prompt(settings)

    if settings.use_existing_data:
        system_prompt = (
            f"Pre-existing tags: {', '.join(names_of(existing_tags))}\n\n"
            f"Pre-existing correspondents: {', '.join(names_of(existing_correspondents))}\n\n"
            f"{settings.system_prompt}\n\n{must_have}"
        )
    else:
        system_prompt = f"{settings.system_prompt}\n\n{must_have}"

    additional_prompts = []
    if settings.use_prompt_tags:
        additional_prompts.append(
            "Predefined tags: " + ", ".join(settings.prompt_tags)
        )
        system_prompt = PREDEFINED_TAGS_INSTRUCTION + settings.predefined_tags_prompt

    if custom_prompt:
        system_prompt = f"{custom_prompt}\n\n{must_have}"

    return AssembledPrompt(system_prompt=system_prompt, additional_prompts=additional_prompts)
