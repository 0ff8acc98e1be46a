from datetime import date

import pytest

from cadence.config import DEFAULT_NOTE_PATHS
from cadence.notes import PathPatternLocator, period_starts, render_path


def test_render_path_substitutes_date_variables():
    day = date(2024, 5, 3)

    assert render_path("Journal/{year}/Daily/{month}/{date}.md", day) == (
        "Journal/2024/Daily/05/03.md"
    )
    assert render_path("W{week}-Q{quarter}-{day}.md", day) == "W18-Q2-Friday.md"


def test_render_path_uses_iso_week_numbers():
    assert render_path("{week}", date(2024, 1, 1)) == "01"
    assert render_path("{week}", date(2021, 1, 3)) == "53"


@pytest.mark.parametrize(
    ("note_type", "start", "end", "expected"),
    [
        (
            "daily",
            date(2024, 1, 30),
            date(2024, 2, 1),
            [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)],
        ),
        (
            "weekly",
            date(2024, 1, 3),
            date(2024, 1, 17),
            [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)],
        ),
        (
            "monthly",
            date(2023, 12, 15),
            date(2024, 2, 1),
            [date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1)],
        ),
        (
            "quarterly",
            date(2024, 2, 10),
            date(2024, 7, 1),
            [date(2024, 1, 1), date(2024, 4, 1), date(2024, 7, 1)],
        ),
        ("yearly", date(2023, 6, 1), date(2024, 1, 1), [date(2023, 1, 1), date(2024, 1, 1)]),
        ("daily", date(2024, 1, 2), date(2024, 1, 1), []),
    ],
)
def test_period_starts_cover_range(note_type, start, end, expected):
    assert period_starts(note_type, start, end) == expected


def test_period_starts_rejects_unknown_type():
    with pytest.raises(ValueError):
        period_starts("hourly", date(2024, 1, 1), date(2024, 1, 2))


def test_locator_returns_one_note_per_period():
    locator = PathPatternLocator(DEFAULT_NOTE_PATHS)

    refs = locator.notes_in_range("weekly", date(2024, 1, 3), date(2024, 1, 10))

    assert [ref.path for ref in refs] == [
        "Journal/2024/Weekly/W01.md",
        "Journal/2024/Weekly/W02.md",
    ]
    assert [ref.date for ref in refs] == [date(2024, 1, 1), date(2024, 1, 8)]


def test_locator_collapses_patterns_without_day_resolution():
    locator = PathPatternLocator({"daily": "inbox/{year}.md"})

    refs = locator.notes_in_range("daily", date(2024, 1, 1), date(2024, 1, 3))

    assert len(refs) == 1
    assert refs[0].date == date(2024, 1, 1)


def test_locator_rejects_unconfigured_note_type():
    locator = PathPatternLocator({"daily": "{year}-{month}-{date}.md"})

    with pytest.raises(ValueError):
        locator.note_path("weekly", date(2024, 1, 1))
