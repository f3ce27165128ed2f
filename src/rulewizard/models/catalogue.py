"""Template catalogue models loaded from YAML."""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .conditions import Condition, parse_condition

# ${question_key} placeholders inside fragment payloads
PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][\w\-]*)\}")


def placeholders(text: Optional[str]) -> list[str]:
    """Return the question keys referenced by ${...} placeholders, in order."""
    if not text:
        return []
    return PLACEHOLDER_PATTERN.findall(text)


def _literal(value: Any, where: str) -> str:
    """Coerce a YAML scalar to a literal, refusing YAML 1.1 booleans."""
    if isinstance(value, bool):
        raise ValueError(f"{where}: unquoted yes/no/true/false parses as a boolean, quote it")
    if value is None:
        raise ValueError(f"{where}: empty value")
    return str(value)


class OptionSpec(BaseModel):
    """One allowed answer literal."""

    model_config = ConfigDict(extra="forbid")

    value: str
    label: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        return _literal(v, "option value")

    def display(self) -> str:
        return f"{self.value} - {self.label}" if self.label else self.value


class QuestionSpec(BaseModel):
    """A templated question as declared in the catalogue."""

    model_config = ConfigDict(extra="forbid")

    key: str = Field(..., pattern=r"^[A-Za-z_][\w\-]*$")
    prompt: str
    help: Optional[str] = None
    options: list[OptionSpec] = Field(default_factory=list)
    pattern: Optional[str] = Field(None, description="Regex for free-text answers")
    multiple: bool = False
    gate: Optional[Any] = Field(None, description="Condition controlling whether the question is asked")

    @field_validator("options", mode="before")
    @classmethod
    def expand_options(cls, v: Any) -> Any:
        """Allow options to be written as bare strings."""
        if not isinstance(v, list):
            return v
        return [item if isinstance(item, dict) else {"value": item} for item in v]

    @field_validator("gate", mode="before")
    @classmethod
    def parse_gate(cls, v: Any) -> Optional[Condition]:
        if v is None:
            return None
        return parse_condition(v)


class FragmentKind(str, Enum):
    """Kinds of configuration a feature can contribute."""

    PROPERTY = "property"
    PLUGIN = "plugin"
    PROFILE = "profile"
    DEPENDENCY = "dependency"
    FILE = "file"


# Fields each fragment kind must declare
_REQUIRED_FIELDS = {
    FragmentKind.PROPERTY: ("name", "value"),
    FragmentKind.PLUGIN: ("artifact_id", "xml"),
    FragmentKind.PROFILE: ("id", "xml"),
    FragmentKind.DEPENDENCY: ("group_id", "artifact_id"),
    FragmentKind.FILE: ("path", "content"),
}


class FragmentSpec(BaseModel):
    """A fixed configuration fragment owned by a feature."""

    model_config = ConfigDict(extra="forbid")

    kind: FragmentKind
    name: Optional[str] = None
    value: Optional[str] = None
    id: Optional[str] = None
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    scope: Optional[str] = None
    path: Optional[str] = None
    xml: Optional[str] = None
    content: Optional[str] = None

    @field_validator("value", "version", mode="before")
    @classmethod
    def coerce_scalar(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return _literal(v, "fragment value")

    @model_validator(mode="after")
    def check_required_fields(self) -> "FragmentSpec":
        missing = [f for f in _REQUIRED_FIELDS[self.kind] if not getattr(self, f)]
        if missing:
            raise ValueError(f"{self.kind.value} fragment is missing: {', '.join(missing)}")
        return self

    def target_template(self) -> str:
        """Target path, possibly still containing ${...} placeholders."""
        if self.kind == FragmentKind.PROPERTY:
            return f"properties/{self.name}"
        if self.kind == FragmentKind.PLUGIN:
            return f"build/plugins/[{self.artifact_id}]"
        if self.kind == FragmentKind.PROFILE:
            return f"profiles/[{self.id}]"
        if self.kind == FragmentKind.DEPENDENCY:
            return f"dependencies/[{self.group_id}:{self.artifact_id}]"
        return f"files/{self.path}"

    def payload_template(self) -> str:
        """Payload text, possibly still containing ${...} placeholders."""
        if self.kind == FragmentKind.PROPERTY:
            return f"<{self.name}>{self.value}</{self.name}>"
        if self.kind == FragmentKind.DEPENDENCY and not self.xml:
            lines = [
                "<dependency>",
                f"    <groupId>{self.group_id}</groupId>",
                f"    <artifactId>{self.artifact_id}</artifactId>",
            ]
            if self.version:
                lines.append(f"    <version>{self.version}</version>")
            if self.scope:
                lines.append(f"    <scope>{self.scope}</scope>")
            lines.append("</dependency>")
            return "\n".join(lines)
        if self.kind == FragmentKind.FILE:
            return self.content or ""
        return (self.xml or "").strip()

    def referenced_keys(self) -> list[str]:
        """Question keys used by this fragment's placeholders."""
        return placeholders(self.target_template()) + placeholders(self.payload_template())


class FeatureSpec(BaseModel):
    """A selectable feature and the fragments it contributes."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    when: Any = Field(..., description="Condition selecting the feature")
    fragments: list[FragmentSpec] = Field(..., min_length=1)

    @field_validator("when", mode="before")
    @classmethod
    def parse_when(cls, v: Any) -> Condition:
        return parse_condition(v)


class Catalogue(BaseModel):
    """
    A versioned template catalogue: ordered questions plus the feature
    table mapping answers to configuration fragments.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    version: str
    title: str = ""
    description: str = ""
    document: str = Field("pom.xml", description="Default target document file name")
    questions: list[QuestionSpec] = Field(..., min_length=1)
    features: list[FeatureSpec] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> str:
        return _literal(v, "catalogue version")

    def question_keys(self) -> list[str]:
        return [q.key for q in self.questions]

    def question(self, key: str) -> Optional[QuestionSpec]:
        for q in self.questions:
            if q.key == key:
                return q
        return None
