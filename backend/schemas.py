from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DropdownOptionIn(BaseModel):
    id: Union[int, str]
    name: str


class FormTypeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    subcategory: str = Field(alias="subCategory")


class FormTypeResponse(BaseModel):
    form_type: Optional[str] = None


class FieldInfo(BaseModel):
    key: str
    kind: str


class FormTypeInfo(BaseModel):
    form_type: str
    label: str
    fields: List[FieldInfo]


class AutoFillRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = None
    subcategory: Optional[str] = Field(default=None, alias="subCategory")
    form_type: Optional[str] = None
    data_fields: Dict[str, Any] = Field(default_factory=dict, alias="dataFields")
    current_values: Dict[str, Any] = Field(default_factory=dict)
    dropdown_options: Dict[str, List[DropdownOptionIn]] = Field(default_factory=dict)
    overwrite: Optional[bool] = None


class AutoFillResponse(BaseModel):
    form_type: Optional[str] = None
    writes: Dict[str, Any] = Field(default_factory=dict)
    highlighted: List[str] = Field(default_factory=list)
    populated_count: int = 0
    message: Optional[str] = None
