"""Core data models for AutoAnswer."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for models exchanged with providers using camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FieldDescriptor(WireModel):
    id: str
    label: str
    name: Optional[str] = None
    html_id: Optional[str] = Field(default=None, alias="htmlId")
    placeholder: Optional[str] = None
    type: str = "text"


class ChoiceOption(WireModel):
    id: str
    label: str


class GroupDescriptor(WireModel):
    id: str
    label: str
    type: Literal["radio", "checkbox"]
    options: List[ChoiceOption] = Field(default_factory=list)


class ChoiceGroup(WireModel):
    group_id: str = Field(alias="groupId")
    group_type: Literal["radio", "checkbox"] = Field(alias="groupType")
    question: str
    options: List[ChoiceOption] = Field(default_factory=list)

    def to_descriptor(self) -> GroupDescriptor:
        return GroupDescriptor(id=self.group_id, label=self.question, type=self.group_type, options=self.options)


class Schema(WireModel):
    text_fields: List[FieldDescriptor] = Field(default_factory=list, alias="textFields")
    choice_groups: List[ChoiceGroup] = Field(default_factory=list, alias="choiceGroups")

    def inputs(self) -> List[Union[FieldDescriptor, GroupDescriptor]]:
        described: List[Union[FieldDescriptor, GroupDescriptor]] = list(self.text_fields)
        described.extend(group.to_descriptor() for group in self.choice_groups)
        return described

    @property
    def is_empty(self) -> bool:
        return not self.text_fields and not self.choice_groups


# -- answer payloads ----------------------------------------------------------


class AnswerItem(WireModel):
    """One keyed entry of an ordered answer list."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: Optional[str] = None
    field_id: Optional[str] = Field(default=None, alias="fieldId")
    selector: Optional[str] = None
    label: Optional[str] = None
    name: Optional[str] = None
    html_id: Optional[str] = Field(default=None, alias="htmlId")
    id_attr: Optional[str] = Field(default=None, alias="idAttr")
    placeholder: Optional[str] = None
    answer: Optional[Any] = None
    value: Optional[Any] = None
    text: Optional[Any] = None

    @property
    def resolved_value(self) -> Optional[Any]:
        for candidate in (self.answer, self.value, self.text):
            if candidate is not None:
                return candidate
        return None


class OrderedAnswers(BaseModel):
    kind: Literal["ordered"] = "ordered"
    items: List[AnswerItem] = Field(default_factory=list)


class StructuredAnswers(BaseModel):
    kind: Literal["structured"] = "structured"
    fields: Dict[str, Any] = Field(default_factory=dict)
    choices: Dict[str, Any] = Field(default_factory=dict)


class FlatAnswers(BaseModel):
    kind: Literal["flat"] = "flat"
    values: Dict[str, Any] = Field(default_factory=dict)


AnswerPayload = Union[OrderedAnswers, StructuredAnswers, FlatAnswers]


# -- provider contracts ---------------------------------------------------------


class ProviderRequest(WireModel):
    page_text: str = Field(default="", alias="pageText")
    inputs: List[Union[FieldDescriptor, GroupDescriptor]] = Field(default_factory=list)
    include_screenshot: bool = Field(default=False, alias="includeScreenshot")
    screenshot: Optional[str] = None


class ProviderResponse(WireModel):
    ok: bool
    answers: Optional[Any] = None
    error: Optional[str] = None


class FocusedRequest(WireModel):
    id: str
    label: str = ""
    name: Optional[str] = None
    html_id: Optional[str] = Field(default=None, alias="htmlId")
    placeholder: Optional[str] = None
    type: str = "text"
    page_text: str = Field(default="", alias="pageText")


class FocusedResponse(WireModel):
    ok: bool
    answer: Optional[str] = None
    error: Optional[str] = None


class ChoiceRequest(WireModel):
    selection_text: str = Field(default="", alias="selectionText")
    groups: List[GroupDescriptor] = Field(default_factory=list)


class ChoiceResponse(WireModel):
    ok: bool
    choices: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


# -- results ------------------------------------------------------------------


class FillResult(BaseModel):
    filled: int = Field(default=0, ge=0)
    submitted: bool = False


class TriggerResult(BaseModel):
    ok: bool
    strategy: Optional[Literal["selection", "viewport", "focus", "page"]] = None
    result: FillResult = Field(default_factory=FillResult)
    error: Optional[str] = None
