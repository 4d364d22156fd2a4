"""Tests for viewport conversions and floating-note placement"""

from __future__ import annotations

import pytest

from rabbithole.annotator.geometry import (
    Point,
    Rect,
    Viewport,
    parse_rects,
    place_note_near_rect,
    to_page_rect,
    to_viewport_rect,
)

VIEWPORT = Viewport(width=1000, height=800)


def test_note_goes_right_of_anchor_when_it_fits():
    anchor = Rect(left=100, top=50, width=80, height=20)
    assert place_note_near_rect(anchor, 200, 100, VIEWPORT) == Point(left=192, top=50)


def test_note_flips_left_when_right_side_overflows():
    anchor = Rect(left=700, top=50, width=200, height=20)
    # 900 + 12 + 200 + 12 > 1000
    assert place_note_near_rect(anchor, 200, 100, VIEWPORT) == Point(left=488, top=50)


def test_note_drops_below_when_neither_side_fits():
    anchor = Rect(left=100, top=50, width=850, height=20)

    placed = place_note_near_rect(anchor, 200, 100, VIEWPORT)

    assert placed.left == 112
    assert placed.top == 82


def test_dropped_note_clamped_to_right_padding():
    anchor = Rect(left=200, top=50, width=300, height=20)
    viewport = Viewport(width=400, height=800)

    placed = place_note_near_rect(anchor, 200, 100, viewport)

    assert placed.left == 400 - 12 - 200
    assert placed.top == 82


@pytest.mark.parametrize(
    ("anchor_top", "expected_top"),
    [
        (750, 688),  # 800 - 12 - 100
        (-30, 12),
        (300, 300),
    ],
)
def test_top_clamped_into_viewport(anchor_top, expected_top):
    anchor = Rect(left=100, top=anchor_top, width=80, height=20)
    assert place_note_near_rect(anchor, 200, 100, VIEWPORT).top == expected_top


def test_page_and_viewport_rects_offset_by_scroll():
    viewport = Viewport(width=1000, height=800, scroll_x=5, scroll_y=400)
    rect = Rect(left=10, top=20, width=30, height=40)

    page = to_page_rect(rect, viewport)

    assert (page.left, page.top, page.width, page.height) == (15, 420, 30, 40)
    assert to_viewport_rect(page, viewport) == rect


def test_parse_rects_skips_malformed_entries():
    rects = parse_rects(
        [
            {"top": 1, "left": 2, "width": 3, "height": 4},
            {"top": 1, "left": 2},
            {"top": "x", "left": 2, "width": 3, "height": 4},
            None,
        ]
    )

    assert rects == [Rect(left=2, top=1, width=3, height=4)]
    assert parse_rects(None) == []
    assert parse_rects({"top": 1}) == []


def test_rect_edges():
    rect = Rect(left=10, top=20, width=30, height=40)
    assert rect.right == 40
    assert rect.bottom == 60
    assert Rect.from_dict(rect.to_dict()) == rect
