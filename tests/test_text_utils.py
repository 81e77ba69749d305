import pytest

from app.utils.highlight_utils import Segment, has_highlight_markers, render_highlighted, render_paragraph, to_plain_text
from app.utils.text_utils import (
    auto_number_plain_text, build_mismatch_note, extract_json, has_section_numbering,
    preprocess_for_analysis, slugify, strip_ocr_noise, truncate,
)


def test_render_marks_highlighted_spans():
    segments = render_paragraph("회사의 <highlight>보안 정책</highlight>을 준수해야 합니다.")
    assert segments == [
        Segment("회사의 ", False),
        Segment("보안 정책", True),
        Segment("을 준수해야 합니다.", False),
    ]


def test_render_splits_paragraphs_and_drops_markers():
    text = "첫 문단 <highlight>중요</highlight>\n\n\n두 번째 문단"
    paragraphs = render_highlighted(text)
    assert len(paragraphs) == 2
    assert to_plain_text(paragraphs) == "첫 문단 중요\n\n두 번째 문단"


def test_unclosed_marker_emphasizes_rest_of_paragraph():
    assert render_paragraph("a <highlight>b c") == [Segment("a ", False), Segment("b c", True)]


def test_has_highlight_markers():
    assert has_highlight_markers("x <highlight>y</highlight>")
    assert not has_highlight_markers("plain")


def test_strip_ocr_noise_keeps_highlight_markers():
    raw = "참고 https://intranet.acme.com/doc <b>굵게</b> <highlight>핵심</highlight>"
    assert strip_ocr_noise(raw) == "참고  굵게 <highlight>핵심</highlight>"


def test_preprocess_collapses_blank_lines_and_trailing_spaces():
    assert preprocess_for_analysis("1. 제목   \n\n\n\n본문  \n") == "1. 제목\n\n본문"


def test_section_numbering_detection():
    assert has_section_numbering("1. 개요\n내용")
    assert has_section_numbering("서문\n1-2. 절차")
    assert not has_section_numbering("번호 없는 문서입니다.")


def test_auto_number_paragraphs():
    assert auto_number_plain_text("첫 문단\n\n두 번째 문단") == "1-1. 첫 문단\n\n1-2. 두 번째 문단"


def test_auto_number_splits_on_body_labels():
    text = "첫 번째 본문: 출근 시간 안내 두 번째 본문: 휴가 규정"
    assert auto_number_plain_text(text) == "1-1. 출근 시간 안내\n\n1-2. 휴가 규정"


def test_mismatch_note_lists_only_low_matches():
    note = build_mismatch_note([
        {"id": "1-1", "title": "개요", "title_body_match": "high"},
        {"id": "1-2", "title": "복지", "title_body_match": "low", "suggested_fixed_title": "보안", "reason": "본문이 보안 내용"},
    ])
    assert "섹션 1-2" in note
    assert "제안 제목: \"보안\"" in note
    assert "1-1" not in note
    assert build_mismatch_note([{"title_body_match": "medium"}]) == ""


def test_extract_json_tolerates_code_fence():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('[1, 2]') == [1, 2]
    with pytest.raises(ValueError):
        extract_json("not json")


def test_slugify_and_truncate():
    assert slugify("HR Policies 2024") == "hr_policies_2024"
    assert truncate("abcdef", 3) == "abc"
    assert truncate("abc", None) == "abc"
