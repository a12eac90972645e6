"""Load IHK exam documents from files or URLs and import them into the store."""
import logging
from pathlib import Path

import requests

from ihk_trainer.config import Config
from ihk_trainer.errors import FetchError, FileReadError, MalformedDocumentError
from ihk_trainer.models import Question
from ihk_trainer.transformer import convert_exam_json

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _decode_yaml(text: str) -> dict:
    import yaml
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedDocumentError("Exam document is not valid YAML", e) from e


def read_exam_text(file_path: str) -> str:
    path = Path(file_path)
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(f"Failed to read file: {path.name}", e) from e


def load_from_text(text: str, suffix: str = ".json") -> list[Question]:
    if suffix.lower() in YAML_SUFFIXES:
        return convert_exam_json(_decode_yaml(text))
    return convert_exam_json(text)


def load_from_file(file_path: str) -> list[Question]:
    """Read an exam file (.json, .yaml or .yml) and convert it to questions."""
    text = read_exam_text(file_path)
    questions = load_from_text(text, Path(file_path).suffix)
    logger.info("Loaded %d questions from %s", len(questions), Path(file_path).name)
    return questions


def load_from_upload(filename: str, content: bytes) -> list[Question]:
    """Convert the bytes of an uploaded exam file to questions."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FileReadError(f"Failed to read file: {filename}", e) from e
    return load_from_text(text, Path(filename).suffix)


def load_from_url(url: str, timeout: float | None = None) -> list[Question]:
    """Download an exam document over HTTP and convert it to questions. No retries."""
    try:
        response = requests.get(url, timeout=timeout or Config.FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise FetchError(f"Failed to fetch exam document: HTTP {status}", e, status=status) from e
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Failed to fetch exam document from {url}", e) from e
    suffix = Path(url.split("?", 1)[0]).suffix
    questions = load_from_text(response.text, suffix)
    logger.info("Loaded %d questions from %s", len(questions), url)
    return questions


def import_questions(store, questions: list[Question]) -> dict:
    result = store.import_questions(questions)
    logger.info("Import finished: %d imported, %d skipped", result["imported"], result["skipped"])
    return result


def import_exam_file(store, file_path: str) -> dict:
    """Load an exam file and batch-insert its questions, skipping duplicates."""
    return import_questions(store, load_from_file(file_path))


def import_exam_url(store, url: str) -> dict:
    return import_questions(store, load_from_url(url))
