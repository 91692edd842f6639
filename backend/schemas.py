# schemas.py
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

# Answer bounds for public submissions
MAX_TEXT_LENGTH = 5000
MAX_CHOICE_LENGTH = 500
MAX_CHOICES = 50
MAX_USER_AGENT_LENGTH = 500

QuestionType = Literal["single_choice", "multiple_choice", "open_text", "rating", "dropdown"]


class QuestionSpec(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    type: QuestionType = "open_text"
    title: str
    options: List[str] = []
    required: bool = False


class SurveyCreate(BaseModel):
    title: str
    description: Optional[str] = None
    questions: List[QuestionSpec] = []
    is_published: bool = False


class SurveyOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    questions: List[QuestionSpec]
    is_published: bool
    class Config:
        from_attributes = True


class PublicSurveyOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    questions: List[QuestionSpec]
    class Config:
        from_attributes = True


class TextAnswer(BaseModel):
    kind: Literal["text"] = "text"
    value: str

    def to_json(self):
        return self.value


class ChoiceListAnswer(BaseModel):
    kind: Literal["choices"] = "choices"
    values: List[str]

    def to_json(self):
        return list(self.values)


Answer = Annotated[Union[TextAnswer, ChoiceListAnswer], Field(discriminator="kind")]


class SurveyResponseSubmission(BaseModel):
    """A public submission that passed shape and size checks."""
    survey_id: str
    response_data: dict[str, Answer]
    user_agent: Optional[str] = None

    def response_data_json(self) -> dict:
        return {key: answer.to_json() for key, answer in self.response_data.items()}


class ResponseOut(BaseModel):
    id: str
    survey_id: str
    response_data: dict
    user_agent: Optional[str]
    submitted_at: Optional[datetime]
    class Config:
        from_attributes = True


class OpenTextAnalysisRequest(BaseModel):
    question_id: str
