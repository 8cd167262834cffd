from datetime import datetime

import pytest

from autofill.types import FormType
from engine import AutoFillEngine, AutoFillError, autofill_engine, format_populated_message

NOW = datetime(2025, 1, 1)
LEVEL_OPTIONS = {"level": [{"id": 1, "name": "National"}, {"id": 2, "name": "International"}]}


def _apply(form, extraction, form_type="papers", **kwargs):
    kwargs.setdefault("now", NOW)

    def write(key, value):
        form[key] = value

    return autofill_engine.autofill(extraction, lambda: dict(form), write, form_type=form_type, **kwargs)


def test_presentation_level_written_as_option_id():
    form = {}
    result = _apply(form, {"Presentation Level": 2}, dropdown_options=LEVEL_OPTIONS)
    assert result.writes == {"level": 2}
    assert result.written_keys == frozenset({"level"})
    assert form == {"level": 2}


def test_existing_values_are_not_overwritten():
    form = {"title_of_paper": "Existing"}
    result = _apply(
        form,
        {"Presentation Level": 2, "Title of Paper": "From document"},
        dropdown_options=LEVEL_OPTIONS,
    )
    assert result.writes == {"level": 2}
    assert form["title_of_paper"] == "Existing"


def test_overwrite_replaces_existing_values():
    form = {"title_of_paper": "Existing"}
    result = _apply(form, {"Title of Paper": "From document"}, overwrite=True)
    assert result.writes == {"title_of_paper": "From document"}
    assert form["title_of_paper"] == "From document"


def test_grant_amount_is_coerced_or_dropped():
    form = {}
    result = _apply(form, {"Grant Received": "15,000"}, form_type="financial")
    assert form == {"grantReceived": 15000}
    assert result.populated_count == 1

    form = {}
    result = _apply(form, {"Grant Received": "abc"}, form_type="financial")
    assert form == {}
    assert result.populated_count == 0
    assert result.message is None


def test_future_dates_are_never_written():
    form = {}
    _apply(form, {"Date": "2099-01-01"})
    assert form == {}

    _apply(form, {"Date": "2023-04-10"})
    assert form == {"date": "2023-04-10"}


def test_first_valid_label_wins_for_a_key():
    resolved = autofill_engine.resolve_fields(
        "papers",
        {"Date of Presentation/Seminar": "not a date", "Date": "2023-04-10", "date": "2022-01-01"},
        now=NOW,
    )
    assert [(r.key, r.value, r.source_label) for r in resolved] == [("date", "2023-04-10", "Date")]


def test_no_overwrite_property_over_every_form():
    for definition in autofill_engine.registry.definitions():
        snapshot = {key: "kept" for key in definition.field_keys}
        extraction = {alias: "2020" for alias, _ in definition.aliases}
        result = autofill_engine.plan(definition.form_type, extraction, snapshot, now=NOW)
        assert result.writes == {}, definition.form_type


def test_enum_without_options_is_dropped():
    form = {}
    result = _apply(form, {"Presentation Level": "International"})
    assert result.writes == {}


def test_malformed_dropdown_options_are_ignored():
    form = {}
    options = {"level": [{"name": "missing id"}, "bogus", {"id": 2, "name": "International"}]}
    result = _apply(form, {"Presentation Level": "International"}, dropdown_options=options)
    assert result.writes == {"level": 2}


def test_malformed_extraction_never_raises():
    form = {}
    assert _apply(form, None).writes == {}
    assert _apply(form, ["not", "a", "mapping"]).writes == {}
    assert _apply(form, {"Place": {"nested": True}, "Title": ["x"]}).writes == {}


def test_category_resolution_and_skip():
    form = {}
    result = autofill_engine.autofill(
        {"Link": "https://example.com/course"},
        lambda: dict(form),
        form.__setitem__,
        category="Research & Consultancy",
        subcategory="E Content",
        now=NOW,
    )
    assert result.form_type == FormType.ECONTENT
    assert form == {"link": "https://example.com/course"}

    skipped = autofill_engine.autofill({"Link": "x"}, dict, form.__setitem__, category="Nope", subcategory="Nope")
    assert skipped.form_type is None
    assert skipped.written_keys == frozenset()


def test_unknown_explicit_form_type_raises():
    with pytest.raises(AutoFillError):
        autofill_engine.autofill({}, dict, lambda k, v: None, form_type="spaceships")
    with pytest.raises(AutoFillError):
        autofill_engine.definition("spaceships")


def test_snapshot_is_read_once_after_resolution():
    reads = []

    def read_values():
        reads.append(1)
        return {}

    autofill_engine.apply("phd", {"Year of Completion": "2019"}, read_values, lambda k, v: None, now=NOW)
    assert reads == [1]


def test_clock_is_used_when_now_is_omitted():
    engine = AutoFillEngine(registry=autofill_engine.registry, clock=lambda: datetime(2023, 1, 1))
    result = engine.plan("papers", {"Date": "2023-04-10"}, {})
    assert result.writes == {}
    result = engine.plan("papers", {"Date": "2022-12-31"}, {})
    assert result.writes == {"date": "2022-12-31"}


def test_populated_message():
    assert format_populated_message(3) == "Populated 3 field(s) from document analysis."


def test_month_year_reaches_journal_article_form():
    result = autofill_engine.plan("journal-articles", {"Date": "March 2023"}, {}, now=NOW)
    assert result.writes == {"month_year": "2023-03-01"}


def test_online_participation_maps_to_virtual_mode():
    options = {"mode": [{"id": 1, "name": "Physical"}, {"id": 2, "name": "Virtual"}, {"id": 3, "name": "Hybrid"}]}
    result = autofill_engine.plan(
        "papers", {"Mode of Participation": "Online"}, {}, dropdown_options=options, now=NOW
    )
    assert result.writes == {"mode": 2}


def test_huge_exponent_is_dropped_not_raised():
    options = {"type": [{"id": 1, "name": "Travel Grant"}]}
    result = autofill_engine.plan(
        "financial",
        {"Grant Received": "1e999999999999999", "Type": "1e99999999"},
        {},
        dropdown_options=options,
        now=NOW,
    )
    assert result.writes == {}
