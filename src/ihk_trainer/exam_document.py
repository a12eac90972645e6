"""
Pydantic models for imported IHK exam documents.

An exam document is the JSON file published for one written IHK exam
(e.g. AP1 Frühjahr): metadata, general instructions, an overarching scenario
and the numbered tasks with their lettered subtasks and sub-parts.
"""
import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ihk_trainer.errors import MalformedDocumentError

Points = Union[int, float]


class _ExamModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ExamMetadata(_ExamModel):
    """Header block of an exam document."""
    exam_title: str = ""
    part: str = ""
    profession: str = ""
    profession_code: str = ""
    area_code: str = ""
    topic: str = ""
    date: str = ""
    duration_minutes: Optional[int] = None
    total_points: Optional[Points] = None
    number_of_tasks: Optional[int] = None
    institution: str = ""
    language: str = ""


class DataTable(_ExamModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class ExamSubPart(_ExamModel):
    sub_part_letter: str = ""
    points: Optional[Points] = None
    question: str = ""
    answer_format: str = ""
    calculation_needed: Optional[str] = None
    explanation: Optional[str] = None
    scenario_context: Optional[str] = None


class ExamSubtask(_ExamModel):
    part_letter: str = ""
    description: str = ""
    scenario_context: Optional[str] = None
    question: Optional[str] = None
    points: Optional[Points] = None
    answer_format: Optional[str] = None
    sub_parts: List[ExamSubPart] = Field(default_factory=list)
    data_table: Optional[DataTable] = None
    text_provided: Optional[str] = None
    image_references: List[str] = Field(default_factory=list)
    calculation_needed: Optional[str] = None
    explanation: Optional[str] = None


class ExamTask(_ExamModel):
    task_number: int
    title: str = ""
    category: Optional[str] = None
    total_points: Optional[Points] = None
    subtasks: List[ExamSubtask] = Field(default_factory=list)


class OverarchingScenario(_ExamModel):
    title: str = ""
    description: str = ""
    covered_topics: List[str] = Field(default_factory=list)


class ExamDocument(_ExamModel):
    """A complete exam as published in the IHK JSON format."""
    exam_metadata: ExamMetadata = Field(default_factory=ExamMetadata)
    general_instructions: List[str] = Field(default_factory=list)
    overarching_scenario: Optional[OverarchingScenario] = None
    tasks: List[ExamTask]

    def get_total_points(self) -> Points:
        """Sum of task points, falling back to the metadata total."""
        task_points = [t.total_points for t in self.tasks if t.total_points is not None]
        if task_points:
            return sum(task_points)
        return self.exam_metadata.total_points or 0


def parse_document(raw: Union[str, bytes, Dict[str, Any]]) -> ExamDocument:
    """Parse raw JSON text (or an already decoded mapping) into an ExamDocument.

    Raises:
        MalformedDocumentError: the text is not JSON, or the JSON does not
            have the shape of an exam document.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedDocumentError("Exam document is not valid JSON", e) from e
    else:
        data = raw
    if not isinstance(data, dict):
        raise MalformedDocumentError(
            f"Exam document must be a JSON object, got {type(data).__name__}"
        )
    try:
        return ExamDocument.model_validate(data)
    except ValidationError as e:
        raise MalformedDocumentError("Exam document does not match the IHK exam format", e) from e
