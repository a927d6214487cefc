"""Source document models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

REQUIRED_FIELDS = ("id", "title", "content", "niveau", "matiere", "cycle")
OPTIONAL_TEXT_FIELDS = ("domaine", "sousdomaine", "content_type", "source", "source_url")


class RawDocument(BaseModel):
    """
    A curriculum document already extracted to plain text.

    Construction never fails on a bad record: blank or missing fields are
    accepted, numbers are read as text, and values of any other type are
    dropped and listed in invalid_fields. The pipeline reports such a record
    instead of aborting the whole batch; call validation_errors() before
    chunking.
    """

    id: str = Field(default="", description="Document identifier")
    title: str = Field(default="", description="Document title")
    content: str = Field(default="", description="Plain text content")
    niveau: str = Field(default="", description="School level (CP, CE1, 6e, ...)")
    matiere: str = Field(default="", description="Subject (mathematiques, francais, ...)")
    cycle: str = Field(default="", description="Curriculum cycle (cycle_2, cycle_3, ...)")
    domaine: Optional[str] = Field(default=None, description="Curriculum domain")
    sousdomaine: Optional[str] = Field(default=None, description="Curriculum sub-domain")
    content_type: str = Field(default="programme_officiel", description="Kind of content")
    source: str = Field(default="", description="Publisher or origin of the text")
    source_url: Optional[str] = Field(default=None, description="Link to the source")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    invalid_fields: List[str] = Field(default_factory=list, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def coerce_record(cls, data: Any) -> Any:
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            return {"invalid_fields": ["record"]}

        data = dict(data)
        invalid = []
        for name in REQUIRED_FIELDS + OPTIONAL_TEXT_FIELDS:
            value = data.get(name)
            if value is None:
                if name in REQUIRED_FIELDS or name in ("content_type", "source"):
                    data.pop(name, None)
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                data[name] = str(value)
            elif not isinstance(value, str):
                invalid.append(name)
                data.pop(name)
        if "metadata" in data and not isinstance(data["metadata"], dict):
            invalid.append("metadata")
            data.pop("metadata")
        data["invalid_fields"] = invalid
        return data

    def validation_errors(self) -> List[str]:
        """Return one message per field with a wrong type and per required field that is missing or blank."""
        if "record" in self.invalid_fields:
            return ["Record is not an object"]
        errors = [f"Invalid type for field: {name}" for name in self.invalid_fields]
        for field_name in REQUIRED_FIELDS:
            if field_name in self.invalid_fields:
                continue
            value = getattr(self, field_name)
            if not value or not value.strip():
                errors.append(f"Missing required field: {field_name}")
        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()
