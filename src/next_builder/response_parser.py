"""
Response Parser

Turns the raw text of one LLM code-generation task into a FileSet.

Models are asked for ``{"files": [{"path": ..., "content": ...}]}`` but
routinely drift: the JSON arrives wrapped in markdown, a file's content comes
back as a nested object, or a file body is itself fenced in ```tsx blocks.
Everything that can be coerced is coerced and recorded as an anomaly; only
text that holds no usable JSON at all is rejected.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .errors import ParseError
from .models import FileSet, GeneratedFile, normalize_path


FENCED_FILE_PATTERN = re.compile(r'^\s*```[\w.+-]*[ \t]*\n(.*?)\n?```\s*$', re.DOTALL)
FENCED_JSON_PATTERN = re.compile(r'```(?:json)?[ \t]*\n(\{.*\})\s*```', re.DOTALL)


@dataclass
class ParseAnomaly:
    """A recoverable irregularity found while normalizing a task response."""
    path: Optional[str]
    kind: str  # 'non_string_content', 'missing_content', 'fenced_content', 'invalid_entry'
    description: str


@dataclass
class ParsedResponse:
    file_set: FileSet
    anomalies: List[ParseAnomaly] = field(default_factory=list)
    description: Optional[str] = None


def coerce_content(value: Any) -> Tuple[str, bool]:
    """
    Coerce file content to a string.

    Non-string values are serialized as JSON with sorted keys and two-space
    indentation so the same value always yields the same text.

    Returns:
        (content, was_coerced)
    """
    if isinstance(value, str):
        return value, False
    if value is None:
        return "", True
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False, default=str), True


def strip_code_fence(content: str) -> Tuple[str, bool]:
    """Unwrap content that is entirely enclosed in a single markdown code fence."""
    match = FENCED_FILE_PATTERN.match(content)
    if not match or '```' in match.group(1):
        return content, False
    return match.group(1), True


def load_json_payload(raw_text: str) -> Any:
    """
    Extract the JSON payload from raw model output.

    Tries the whole text first, then the body of a ```json fence, then the
    outermost ``{...}`` span. Fence markers inside file contents are left
    untouched.
    """
    if raw_text is None or not raw_text.strip():
        raise ParseError("Empty response", raw_text)

    try:
        return json.loads(raw_text)
    except json.JSONDecodeError:
        pass

    candidates = []
    fenced = FENCED_JSON_PATTERN.search(raw_text)
    if fenced:
        candidates.append(fenced.group(1))
    json_start = raw_text.find('{')
    json_end = raw_text.rfind('}') + 1
    if json_start != -1 and json_end > json_start:
        candidates.append(raw_text[json_start:json_end])
    if not candidates:
        raise ParseError("No JSON object found in response", raw_text)

    error = None
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            error = e
    raise ParseError(f"Response is not valid JSON: {error}", raw_text) from error


class ResponseParser:
    """Parses task responses into FileSets; keeps no state between calls."""

    def parse(self, raw_text: str) -> ParsedResponse:
        """
        Parse one task's raw output.

        Args:
            raw_text: Raw LLM output, expected to hold a JSON object with a files array

        Returns:
            ParsedResponse with the normalized FileSet and any anomalies

        Raises:
            ParseError: the text holds no JSON object, or ``files`` is missing
                or not a list
        """
        payload = load_json_payload(raw_text)

        if not isinstance(payload, dict):
            raise ParseError("Response JSON is not an object", raw_text)
        entries = payload.get('files')
        if entries is None:
            raise ParseError("Response has no 'files' field", raw_text)
        if not isinstance(entries, list):
            raise ParseError(f"'files' must be a list, got {type(entries).__name__}", raw_text)

        file_set = FileSet()
        anomalies: List[ParseAnomaly] = []

        for index, entry in enumerate(entries):
            generated = self._parse_entry(index, entry, anomalies)
            if generated is not None:
                file_set.add(generated)

        description = payload.get('description')
        return ParsedResponse(
            file_set=file_set,
            anomalies=anomalies,
            description=description if isinstance(description, str) else None,
        )

    def _parse_entry(self, index: int, entry: Any, anomalies: List[ParseAnomaly]) -> Optional[GeneratedFile]:
        if not isinstance(entry, dict):
            anomalies.append(ParseAnomaly(None, 'invalid_entry',
                                          f"files[{index}] is {type(entry).__name__}, not an object"))
            return None

        path = entry.get('path')
        if not isinstance(path, str) or not normalize_path(path):
            anomalies.append(ParseAnomaly(None, 'invalid_entry', f"files[{index}] has no usable path"))
            return None
        path = normalize_path(path)

        raw_content = entry.get('content')
        content, coerced = coerce_content(raw_content)
        if raw_content is None:
            anomalies.append(ParseAnomaly(path, 'missing_content',
                                          "No content provided, using an empty file"))
        elif coerced:
            anomalies.append(ParseAnomaly(path, 'non_string_content',
                                          f"Content was {type(raw_content).__name__}, serialized to JSON text"))
        else:
            content, unwrapped = strip_code_fence(content)
            if unwrapped:
                anomalies.append(ParseAnomaly(path, 'fenced_content', "Removed markdown code fence"))

        return GeneratedFile(path, content)


def parse(raw_text: str) -> ParsedResponse:
    return ResponseParser().parse(raw_text)
