import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from ihk_trainer.errors import FetchError, FileReadError, MalformedDocumentError
from ihk_trainer.loader import (
    import_exam_file, import_exam_url, load_from_file, load_from_upload, load_from_url,
)


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_from_json_file(tmp_path, exam_dict):
    path = _write(tmp_path, "exam.json", json.dumps(exam_dict))
    questions = load_from_file(path)
    assert len(questions) == 4


def test_load_from_json_file_with_bom(tmp_path, exam_dict):
    path = tmp_path / "exam_bom.json"
    path.write_text(json.dumps(exam_dict), encoding="utf-8-sig")
    assert len(load_from_file(str(path))) == 4


def test_load_from_yaml_file(tmp_path):
    text = """
tasks:
  - task_number: 1
    title: YAML
    subtasks:
      - part_letter: a
        description: Beschreibung
        question: Was ist YAML?
        points: 2
"""
    questions = load_from_file(_write(tmp_path, "exam.yaml", text))
    assert len(questions) == 1
    assert questions[0].difficulty == 1


def test_invalid_json_file_raises_malformed(tmp_path):
    path = _write(tmp_path, "broken.json", '{"tasks": [')
    with pytest.raises(MalformedDocumentError):
        load_from_file(path)


def test_invalid_yaml_file_raises_malformed(tmp_path):
    path = _write(tmp_path, "broken.yml", "tasks: [unclosed")
    with pytest.raises(MalformedDocumentError):
        load_from_file(path)


def test_missing_file_raises_file_read_error(tmp_path):
    with pytest.raises(FileReadError):
        load_from_file(str(tmp_path / "missing.json"))


def test_load_from_upload(exam_dict):
    content = json.dumps(exam_dict).encode("utf-8")
    assert len(load_from_upload("exam.json", content)) == 4


def test_load_from_upload_rejects_binary():
    with pytest.raises(FileReadError):
        load_from_upload("exam.json", b"\xff\xfe\xfa")


def test_load_from_url(exam_dict):
    response = MagicMock()
    response.text = json.dumps(exam_dict)
    with patch("ihk_trainer.loader.requests.get", return_value=response) as mock_get:
        questions = load_from_url("https://example.org/ap1.json", timeout=5)
    mock_get.assert_called_once_with("https://example.org/ap1.json", timeout=5)
    response.raise_for_status.assert_called_once()
    assert len(questions) == 4


def test_load_from_url_http_error_carries_status():
    response = MagicMock()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=MagicMock(status_code=404))
    with patch("ihk_trainer.loader.requests.get", return_value=response):
        with pytest.raises(FetchError) as exc:
            load_from_url("https://example.org/missing.json")
    assert exc.value.status == 404


def test_load_from_url_network_error():
    with patch("ihk_trainer.loader.requests.get", side_effect=requests.exceptions.ConnectionError("down")):
        with pytest.raises(FetchError) as exc:
            load_from_url("https://example.org/ap1.json")
    assert exc.value.status is None


def test_import_exam_file_skips_duplicates(store, tmp_path, exam_dict):
    path = _write(tmp_path, "exam.json", json.dumps(exam_dict))
    first = import_exam_file(store, path)
    assert first["imported"] == 4
    assert first["skipped"] == 0
    second = import_exam_file(store, path)
    assert second["imported"] == 0
    assert second["skipped"] == 4
    assert second["message"] == "No new questions found to import"
    assert len(store.get_questions()) == 4


def test_import_exam_url(store, exam_dict):
    response = MagicMock()
    response.text = json.dumps(exam_dict)
    with patch("ihk_trainer.loader.requests.get", return_value=response):
        result = import_exam_url(store, "https://example.org/ap1.json")
    assert result["message"] == "Successfully imported 4 questions"
