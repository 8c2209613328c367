import asyncio
import json
import logging

import pytest

from aura.libs.logging_utils import (
    ColorTextFormatter,
    JournalContextFilter,
    JsonFormatter,
    log_context,
)


def _record(msg="[Pipeline] poem enrichment unavailable", level=logging.WARNING, **extra):
    record = logging.LogRecord("aura.test", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_attaches_bound_fields_and_extras():
    with log_context(user_id="u1", report_id="entry-1"):
        record = _record(feature="poem")
        JournalContextFilter().filter(record)

    assert record.report_id == "entry-1"
    assert record.journal == " (user_id=u1 report_id=entry-1 feature=poem)"

    payload = json.loads(JsonFormatter().format(record))
    assert payload["report_id"] == "entry-1"
    assert payload["feature"] == "poem"
    assert payload["level"] == "WARNING"


def test_context_is_restored_after_block():
    with log_context(report_id="outer"):
        with log_context(feature="echo"):
            inner = _record()
            JournalContextFilter().filter(inner)
        outer = _record()
        JournalContextFilter().filter(outer)
    after = _record()
    JournalContextFilter().filter(after)

    assert (inner.report_id, inner.feature) == ("outer", "echo")
    assert not hasattr(outer, "feature")
    assert after.journal == ""


@pytest.mark.asyncio
async def test_gathered_tasks_inherit_report_context():
    records = []

    async def enrichment(feature):
        record = _record(feature=feature)
        JournalContextFilter().filter(record)
        records.append(record)

    with log_context(report_id="entry-7"):
        await asyncio.gather(enrichment("poem"), enrichment("avatar"))

    assert {record.report_id for record in records} == {"entry-7"}


def test_text_formatter_colours_warnings_only_when_enabled():
    fmt = "%(levelname)s %(message)s%(journal)s"
    warning = _record(msg="oi")
    info = _record(msg="oi", level=logging.INFO)

    assert ColorTextFormatter(fmt, color=True).format(warning) == "\033[33mWARNING oi\033[0m"
    assert ColorTextFormatter(fmt, color=True).format(info) == "INFO oi"
    assert ColorTextFormatter(fmt, color=False).format(warning) == "WARNING oi"
