import logging
from datetime import date

from cadence.task_aggregator import AggregateOptions, TaskAggregator

TODAY = date(2024, 1, 15)


def _aggregate(memory_fs, daily_locator, **options):
    aggregator = TaskAggregator(daily_locator, memory_fs, max_workers=4)
    return aggregator.aggregate(AggregateOptions(today=TODAY, **options))


def test_overdue_tasks_across_three_notes(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-10.md"] = "## Tasks\n- [ ] Send invoice due:2024-01-12\n"
    memory_fs.files["daily/2024-01-11.md"] = (
        "## Tasks\n- [ ] Book dentist due:2024-01-13\n- [x] Pay rent due:2024-01-01\n"
    )
    memory_fs.files["daily/2024-01-12.md"] = "## Tasks\n- [ ] Renew domain due:2024-01-14\n"

    result = _aggregate(memory_fs, daily_locator)

    assert len(result.overdue) == 3
    assert len(result.completed) == 1
    assert result.completed[0].text == "Pay rent"
    assert {task.text for task in result.overdue} == {
        "Send invoice",
        "Book dentist",
        "Renew domain",
    }
    assert daily_locator.calls == [("daily", date(2024, 1, 8), TODAY)]


def test_tasks_carry_source_path_and_date(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-14.md"] = "# Sunday\n\n- [ ] Stretch\n"

    result = _aggregate(memory_fs, daily_locator)

    task = result.open[0]
    assert task.source_path == "daily/2024-01-14.md"
    assert task.source_date == date(2024, 1, 14)
    assert task.line == 3
    assert task.address == "daily/2024-01-14.md:3"


def test_merge_order_is_newest_note_first(memory_fs, daily_locator):
    for day in (10, 11, 12):
        memory_fs.files[f"daily/2024-01-{day}.md"] = (
            f"- [ ] first on {day}\n- [ ] second on {day}\n"
        )

    result = _aggregate(memory_fs, daily_locator)

    assert [task.text for task in result.open] == [
        "first on 12",
        "second on 12",
        "first on 11",
        "second on 11",
        "first on 10",
        "second on 10",
    ]


def test_buckets_sort_by_priority_then_due(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-14.md"] = "\n".join(
        [
            "- [ ] plain",
            "- [ ] medium soon !! due:2024-01-20",
            "- [ ] high undated !!!",
            "- [ ] high dated priority:high due:2024-01-16",
            "- [ ] low !",
            "- [ ] medium sooner !! due:2024-01-17",
        ]
    )

    result = _aggregate(memory_fs, daily_locator)

    assert [task.text for task in result.open] == [
        "high dated",
        "high undated",
        "medium sooner",
        "medium soon",
        "low",
        "plain",
    ]
    assert [task.text for task in result.by_priority.high] == ["high dated", "high undated"]
    assert [task.text for task in result.by_priority.none] == ["plain"]


def test_by_priority_only_holds_open_tasks(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-14.md"] = "- [x] finished !!!\n- [ ] pending !!!\n"

    result = _aggregate(memory_fs, daily_locator)

    assert [task.text for task in result.by_priority.high] == ["pending"]
    assert [task.text for task in result.completed] == ["finished"]


def test_stale_uses_age_then_created_then_note_date(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-10.md"] = "\n".join(
        [
            "- [ ] explicit age age:20",
            "- [ ] young despite old created age:2 created:2023-01-01",
            "- [ ] old created created:2023-12-01",
            "- [ ] recent note",
        ]
    )

    result = _aggregate(memory_fs, daily_locator)

    assert {task.text for task in result.stale} == {"explicit age", "old created"}


def test_stale_uses_note_date_without_metadata(memory_fs, daily_locator):
    memory_fs.files["daily/2023-12-20.md"] = "- [ ] forgotten\n"

    result = _aggregate(memory_fs, daily_locator, days_back=30)

    assert [task.text for task in result.stale] == ["forgotten"]


def test_exclude_completed(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-14.md"] = "- [x] finished\n- [ ] pending\n"

    result = _aggregate(memory_fs, daily_locator, include_completed=False)

    assert result.completed == ()
    assert [task.text for task in result.open] == ["pending"]


def test_explicit_window_overrides_days_back(memory_fs, daily_locator):
    memory_fs.files["daily/2023-06-01.md"] = "- [ ] old one\n"
    memory_fs.files["daily/2024-01-14.md"] = "- [ ] recent one\n"

    result = _aggregate(
        memory_fs, daily_locator, start=date(2023, 6, 1), end=date(2023, 6, 2)
    )

    assert [task.text for task in result.open] == ["old one"]


def test_unreadable_notes_are_skipped_with_warning(memory_fs, daily_locator, caplog):
    memory_fs.files["daily/2024-01-12.md"] = UnicodeDecodeError(
        "utf-8", b"\xff", 0, 1, "invalid start byte"
    )
    memory_fs.files["daily/2024-01-13.md"] = PermissionError("denied")
    memory_fs.files["daily/2024-01-14.md"] = "- [ ] survivor\n"

    with caplog.at_level(logging.WARNING, logger="cadence.task_aggregator"):
        result = _aggregate(memory_fs, daily_locator)

    assert [task.text for task in result.open] == ["survivor"]
    assert "daily/2024-01-12.md" in caplog.text
    assert "daily/2024-01-13.md" in caplog.text


def test_summary_counts(memory_fs, daily_locator):
    memory_fs.files["daily/2024-01-14.md"] = (
        "- [ ] late !!! due:2024-01-01\n- [x] done\n- [ ] later\n"
    )

    summary = _aggregate(memory_fs, daily_locator).summary()

    assert summary == {
        "open": 2,
        "completed": 1,
        "overdue": 1,
        "stale": 0,
        "byPriority": {"high": 1, "medium": 0, "low": 0, "none": 1},
    }
