from __future__ import annotations

from datetime import date

import pytest

from assignflow.domain.entities import (
    ByContent,
    ByPath,
    RecurrenceRule,
    TaskTemplate,
    attachment_from_dict,
    attachment_to_dict,
    resolve_attachment,
)
from assignflow.domain.enums import Pattern, Priority
from assignflow.domain.errors import ValidationError


def test_bare_string_is_a_path() -> None:
    assert resolve_attachment(" /files/a.pdf ") == ByPath("/files/a.pdf")


def test_mapping_with_content_is_inline() -> None:
    resolved = resolve_attachment({"content": "hello", "filename": "note.txt"})

    assert resolved == ByContent(b"hello", "note.txt")


def test_mapping_with_path() -> None:
    assert resolve_attachment({"path": "/files/b.pdf"}) == ByPath("/files/b.pdf")


def test_resolved_variant_passes_through() -> None:
    variant = ByContent(b"x", "x.bin")

    assert resolve_attachment(variant) is variant


@pytest.mark.parametrize("raw", ["", {"filename": "only-name.txt"}, 42, None])
def test_unsupported_shapes_rejected(raw) -> None:
    with pytest.raises(ValidationError) as info:
        resolve_attachment(raw)

    assert info.value.parameter == "attachments"


def test_inline_content_stored_as_base64() -> None:
    stored = attachment_to_dict(ByContent(b"\xff\x00", "blob.bin"))

    assert stored == {"kind": "content", "filename": "blob.bin", "content": "/wA="}
    assert attachment_from_dict(stored) == ByContent(b"\xff\x00", "blob.bin")


def test_template_from_input_resolves_attachments_once() -> None:
    rule = RecurrenceRule(pattern=Pattern.ONE_TIME, start_date=date(2024, 1, 2))

    template = TaskTemplate.from_input(
        "  Quarterly filing ",
        rule,
        priority="high",
        attachments=["/forms/a.pdf", {"content": "memo", "filename": "memo.txt"}],
    )

    assert template.title == "Quarterly filing"
    assert template.priority is Priority.HIGH
    assert template.attachments == (ByPath("/forms/a.pdf"), ByContent(b"memo", "memo.txt"))


@pytest.mark.parametrize(
    "title, priority, parameter",
    [(" ", "normal", "title"), ("Filing", "critical", "priority")],
)
def test_template_from_input_rejects_bad_fields(title: str, priority: str, parameter: str) -> None:
    rule = RecurrenceRule(pattern=Pattern.ONE_TIME, start_date=date(2024, 1, 2))

    with pytest.raises(ValidationError) as info:
        TaskTemplate.from_input(title, rule, priority=priority)

    assert info.value.parameter == parameter
