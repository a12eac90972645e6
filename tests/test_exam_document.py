import json

import pytest

from ihk_trainer.errors import MalformedDocumentError
from ihk_trainer.exam_document import ExamDocument, parse_document
from ihk_trainer.seed import load_example_exam


def test_parse_document_from_dict(exam_dict):
    doc = parse_document(exam_dict)
    assert isinstance(doc, ExamDocument)
    assert doc.exam_metadata.profession == "Fachinformatiker"
    assert len(doc.tasks) == 2
    assert doc.tasks[0].subtasks[1].sub_parts[1].points == 6


def test_parse_document_from_json_text(exam_dict):
    doc = parse_document(json.dumps(exam_dict))
    assert doc.tasks[1].category == "Datenbanken"


def test_unknown_fields_are_ignored(exam_dict):
    exam_dict["tasks"][0]["bonus_field"] = "ignored"
    exam_dict["unexpected"] = {"a": 1}
    doc = parse_document(exam_dict)
    assert doc.tasks[0].title == "Netzwerk"


def test_missing_optional_fields_take_defaults():
    doc = parse_document({"tasks": [{"task_number": 1, "subtasks": [{"part_letter": "a"}]}]})
    subtask = doc.tasks[0].subtasks[0]
    assert subtask.sub_parts == []
    assert subtask.question is None
    assert doc.exam_metadata.profession == ""
    assert doc.overarching_scenario is None


def test_invalid_json_raises_malformed():
    with pytest.raises(MalformedDocumentError) as exc:
        parse_document("{not json")
    assert exc.value.cause is not None


def test_non_object_raises_malformed():
    with pytest.raises(MalformedDocumentError):
        parse_document("[1, 2, 3]")


def test_schema_violation_raises_malformed():
    with pytest.raises(MalformedDocumentError):
        parse_document({"tasks": [{"title": "no number"}]})
    with pytest.raises(MalformedDocumentError):
        parse_document({"exam_metadata": {}})


def test_total_points_sums_tasks():
    doc = parse_document(load_example_exam())
    assert doc.get_total_points() == 35


def test_total_points_falls_back_to_metadata():
    doc = parse_document({"exam_metadata": {"total_points": 100}, "tasks": []})
    assert doc.get_total_points() == 100
