from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict, Union

LANGUAGE_PATTERN = "^[A-Za-z]{2,3}([-_][A-Za-z]{2,4})?$"

class TranslateRequest(BaseModel):
    text: Optional[str] = None
    texts: Optional[List[Any]] = None
    target: Optional[str] = Field(None, pattern=LANGUAGE_PATTERN)
    source: Optional[str] = Field(None, pattern=LANGUAGE_PATTERN)

    @field_validator('texts')
    def texts_as_strings(cls, v):
        if v is None:
            return v
        return ["" if t is None else str(t) for t in v]

    @model_validator(mode="after")
    def text_and_target_required(self):
        if not self.target or (not self.text and self.texts is None):
            raise ValueError("text or texts, and target, are required")
        return self

    @property
    def source_lang(self) -> str:
        return self.source or "en"

    @property
    def is_batch(self) -> bool:
        return self.texts is not None

class TranslateResponse(BaseModel):
    translated: Union[str, List[str]]

class PostTranslateRequest(BaseModel):
    title: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    target: str = Field(..., pattern=LANGUAGE_PATTERN)
    source: str = Field("en", pattern=LANGUAGE_PATTERN)

class PostTranslateResponse(BaseModel):
    translated: Dict[str, str]

class ObjectTranslateRequest(BaseModel):
    content: Any
    target: str = Field(..., pattern=LANGUAGE_PATTERN)
    source: str = Field("en", pattern=LANGUAGE_PATTERN)

class FieldError(BaseModel):
    path: str
    error: str

class ObjectTranslateResponse(BaseModel):
    translated: Any
    errors: List[FieldError] = []
