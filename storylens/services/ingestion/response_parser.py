"""Tagged-variant parser for chunk-tagging responses.

The tagging prompt (:data:`PROMPT_VERSION`) asks the model for a JSON
object with five keys.  Models do not always comply, so every response is
parsed into exactly one of three variants:

``json``
    A JSON object (bare, fenced in a markdown code block, or embedded in
    prose) carrying at least one recognised category key.
``sections``
    One line per category, e.g. ``CHARACTERS: Sarah, Marcus``.
``unstructured``
    Anything else.  The raw text is kept for logging; it yields no tags.

:func:`parse_tag_response` never raises.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, Literal, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from storylens.models.tags import ChunkTags
from storylens.utils.text import dedupe_casefold

logger = structlog.get_logger(logger_name=__name__)

PROMPT_VERSION = "tags-v2"

# Accepted spellings of each category key, normalised to lowercase with
# separators removed ("plot_elements", "Plot Elements" -> "plotelements").
_KEY_ALIASES: dict[str, str] = {
    "characters": "characters",
    "character": "characters",
    "people": "characters",
    "themes": "themes",
    "theme": "themes",
    "emotions": "emotions",
    "emotion": "emotions",
    "moods": "emotions",
    "plotelements": "plot_elements",
    "plotelement": "plot_elements",
    "plot": "plot_elements",
    "semantictags": "semantic_tags",
    "semantictag": "semantic_tags",
    "tags": "semantic_tags",
    "keywords": "semantic_tags",
}

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)
_SECTION_RE = re.compile(
    r"^[ \t\-*#]*(?P<key>[A-Za-z][A-Za-z _]{2,30}?)[ \t]*[:=][ \t]*(?P<values>.*)$",
    re.MULTILINE,
)
_EMPTY_MARKERS = frozenset({"none", "n/a", "na", "-", "null", "[]"})


def _canonical_key(raw: str) -> str | None:
    return _KEY_ALIASES.get(re.sub(r"[\s_\-]", "", raw).lower())


def _as_str_list(value: Any) -> list[str]:
    """Coerce a JSON value (list or comma-separated string) to strings."""
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    if isinstance(value, str):
        return _split_values(value)
    return []


def _split_values(raw: str) -> list[str]:
    raw = raw.strip().strip("[]")
    parts = re.split(r"[,;]", raw)
    return [p for p in (part.strip() for part in parts) if p and p.lower() not in _EMPTY_MARKERS]


def _build_tags(fields: dict[str, list[str]]) -> ChunkTags:
    return ChunkTags(
        characters=dedupe_casefold(fields.get("characters", [])),
        themes=dedupe_casefold(fields.get("themes", [])),
        emotions=dedupe_casefold(fields.get("emotions", [])),
        plot_elements=dedupe_casefold(fields.get("plot_elements", [])),
        semantic_tags=dedupe_casefold(fields.get("semantic_tags", [])),
    )


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class JsonTagResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    fields: dict[str, list[str]] = Field(default_factory=dict)

    def to_tags(self) -> ChunkTags:
        return _build_tags(self.fields)


class SectionTagResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["sections"] = "sections"
    fields: dict[str, list[str]] = Field(default_factory=dict)

    def to_tags(self) -> ChunkTags:
        return _build_tags(self.fields)


class UnstructuredResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unstructured"] = "unstructured"
    raw: str = ""

    def to_tags(self) -> ChunkTags:
        return ChunkTags()


TagResponse = Annotated[
    Union[JsonTagResponse, SectionTagResponse, UnstructuredResponse],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _try_json(text: str) -> JsonTagResponse | None:
    cleaned = text.strip()
    fence = _FENCE_RE.search(cleaned)
    if fence:
        cleaned = fence.group(1).strip()
    else:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        cleaned = cleaned[start : end + 1]

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    fields: dict[str, list[str]] = {}
    for raw_key, value in data.items():
        key = _canonical_key(str(raw_key))
        if key is not None:
            fields.setdefault(key, []).extend(_as_str_list(value))
    if not fields:
        return None
    return JsonTagResponse(fields=fields)


def _try_sections(text: str) -> SectionTagResponse | None:
    fields: dict[str, list[str]] = {}
    for match in _SECTION_RE.finditer(text):
        key = _canonical_key(match.group("key"))
        if key is not None:
            fields.setdefault(key, []).extend(_split_values(match.group("values")))
    if not fields:
        return None
    return SectionTagResponse(fields=fields)


def parse_tag_response(text: str | None) -> JsonTagResponse | SectionTagResponse | UnstructuredResponse:
    """Classify and parse a tagging response.  Never raises."""
    if not text or not text.strip():
        return UnstructuredResponse(raw=text or "")

    parsed = _try_json(text) or _try_sections(text)
    if parsed is not None:
        return parsed

    logger.warning("tag_response_unstructured", response_preview=text[:200])
    return UnstructuredResponse(raw=text)
