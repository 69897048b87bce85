import pytest

from locsync.core.config import StatusLabels
from locsync.core.errors import RecordSchemaError
from locsync.sync.keys import Key
from locsync.sync.schema import RecordDecoder, Status, cell_text, required_fields


def _item(rid: str, fields: dict, mtime=None) -> dict:
    item = {"record_id": rid, "fields": fields}
    if mtime is not None:
        item["last_modified_time"] = mtime
    return item


def test_key_equality_ignores_case_and_keeps_spelling():
    a = Key("Menu.Start")
    b = Key("menu.start")

    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1
    assert a.text == "Menu.Start"
    assert a != "menu.start"


def test_cell_text_flattens_rich_text_segments():
    assert cell_text(None) == ""
    assert cell_text("plain") == "plain"
    assert cell_text([{"type": "text", "text": "Hel"}, {"type": "text", "text": "lo"}]) == "Hello"
    assert cell_text({"text": "x"}) == "x"


def test_decode_maps_labels_and_locale_texts():
    decoder = RecordDecoder(["en-US", "zh-CN"])

    [record] = decoder.decode_all(
        [_item("rec1", {"Key": "Greeting", "Status": "已完成", "en-US": "Hello", "Description": "d"}, mtime=1700)]
    )

    assert record.record_id == "rec1"
    assert record.key == Key("greeting")
    assert record.status == Status.COMPLETED
    assert record.text("en-US") == "Hello"
    assert record.text("zh-CN") == ""
    assert record.last_modified_time == 1700


def test_decoded_key_keeps_surrounding_whitespace():
    decoder = RecordDecoder(["en-US"])

    [record] = decoder.decode_all([_item("r", {"Key": "Hello ", "Status": "未完成"})])

    assert record.key.text == "Hello "
    assert record.key != Key("Hello")


def test_decode_all_reports_every_invalid_record():
    decoder = RecordDecoder(["en-US"])
    items = [
        _item("ok", {"Key": "A", "Status": "未完成"}),
        _item("no_key", {"Status": "未完成"}),
        _item("no_status", {"Key": "B"}),
        _item("bad_status", {"Key": "C", "Status": "Done"}),
    ]

    with pytest.raises(RecordSchemaError) as exc:
        decoder.decode_all(items)

    problems = {(p["record_id"], p["field"]) for p in exc.value.problems}
    assert problems == {("no_key", "Key"), ("no_status", "Status"), ("bad_status", "Status")}
    assert "no_key:Key" in str(exc.value)


def test_custom_status_labels():
    decoder = RecordDecoder(["en-US"], StatusLabels(not_started="Todo", in_translation="Doing", completed="Done"))

    [record] = decoder.decode_all([_item("r", {"Key": "A", "Status": "Doing"})])

    assert record.status == Status.IN_TRANSLATION
    assert decoder.label(Status.NOT_STARTED) == "Todo"


def test_record_fields_writes_status_only_when_given():
    decoder = RecordDecoder(["en-US", "zh-CN"])

    created = decoder.record_fields(Key("NewKey"), {"en-US": "Hi", "zh-CN": "你好"}, status=Status.NOT_STARTED)
    updated = decoder.record_fields(Key("NewKey"), {"en-US": "Hi"})

    assert created == {"Key": "NewKey", "Status": "未完成", "en-US": "Hi", "zh-CN": "你好"}
    assert updated == {"Key": "NewKey", "en-US": "Hi"}


def test_required_fields_include_review_columns():
    names = [name for name, _type in required_fields(["en-US", "zh-CN"])]
    plain = [name for name, _type in required_fields(["en-US"], include_review=False)]

    assert names == [
        "Key",
        "Description",
        "Status",
        "ReviewStatus",
        "en-US",
        "zh-CN",
        "Review_en-US",
        "Review_zh-CN",
    ]
    assert plain == ["Key", "Description", "Status", "en-US"]


def test_create_table_fields_carry_status_options():
    fields = RecordDecoder(["en-US"]).create_table_fields()
    status = next(f for f in fields if f["field_name"] == "Status")

    assert status["type"] == 3
    assert [o["name"] for o in status["property"]["options"]] == ["未完成", "翻译中", "已完成"]
