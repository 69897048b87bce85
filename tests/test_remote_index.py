import asyncio

import pytest

from locsync.core.errors import ConflictError, LocalStoreError, RemoteApiError
from locsync.sync import remote_index
from locsync.sync.inventory import scan_local
from locsync.sync.keys import Key
from locsync.sync.ports import RecordPage
from locsync.sync.schema import RecordDecoder, RemoteRecord, Status


def _rec(rid: str, key: str, status: Status = Status.NOT_STARTED, mtime: int = 0, **texts) -> RemoteRecord:
    return RemoteRecord(record_id=rid, key=Key(key), status=status, texts=texts, last_modified_time=mtime)


class _FakeLocal:
    def __init__(self, tables: dict, locales: list[str]):
        self.tables = tables
        self.locales = locales

    def list_tables(self):
        return list(self.tables)

    def list_locales(self):
        return list(self.locales)

    def scan_entries(self, table: str):
        for key, values in self.tables[table].items():
            for locale, text in values.items():
                yield key, locale, text

    def write_entry(self, table, key, locale, text):
        raise AssertionError("scan must not write")


class _PagedRemote:
    def __init__(self, pages: list[RecordPage]):
        self.pages = pages
        self.tokens: list = []

    async def list_records_page(self, table_id: str, page_token=None):
        self.tokens.append(page_token)
        return self.pages[len(self.tokens) - 1]


def test_scan_local_keeps_empty_source_keys_out_of_data():
    store = _FakeLocal(
        {"UI": {"Hello": {"en-US": "Hello", "zh-CN": ""}, "Draft": {"en-US": "", "zh-CN": "草稿"}}},
        ["en-US", "zh-CN"],
    )

    inv = scan_local(store, "UI")

    assert inv.key_set == {Key("hello"), Key("draft")}
    assert inv.data == {Key("Hello"): {"en-US": "Hello"}}


def test_scan_local_honours_configured_source_locale():
    store = _FakeLocal({"UI": {"Only": {"zh-CN": "仅中文"}}}, ["en-US", "zh-CN"])

    inv = scan_local(store, "UI", source_locale="zh-CN")

    assert inv.data == {Key("Only"): {"zh-CN": "仅中文"}}


def test_scan_local_keeps_first_spelling_of_case_colliding_keys():
    store = _FakeLocal({"UI": {"Hello": {"en-US": "A"}, "hello": {"en-US": "B"}}}, ["en-US"])
    logged = []

    inv = scan_local(store, "UI", log_func=lambda *args: logged.append(args))

    assert inv.data == {Key("Hello"): {"en-US": "A"}}
    assert [k.text for k in inv.data] == ["Hello"]
    assert inv.collisions == {"Hello": ["hello"]}
    assert [(level, message) for level, _module, message, _detail in logged] == [
        ("WARNING", "local_key_case_collision")
    ]
    assert '"skipped": ["hello"]' in logged[0][3]


def test_scan_local_errors():
    with pytest.raises(LocalStoreError, match="local_store_no_tables"):
        scan_local(_FakeLocal({}, ["en-US"]), "UI")
    with pytest.raises(LocalStoreError, match="local_table_missing"):
        scan_local(_FakeLocal({"Other": {}}, ["en-US"]), "UI")
    with pytest.raises(LocalStoreError, match="local_store_no_locales"):
        scan_local(_FakeLocal({"UI": {}}, []), "UI")
    with pytest.raises(LocalStoreError, match="source_locale_not_configured"):
        scan_local(_FakeLocal({"UI": {}}, ["en-US"]), "UI", source_locale="fr-FR")


def test_build_keeps_newest_duplicate_and_marks_the_rest():
    records = [
        _rec("old", "Hello", mtime=100),
        _rec("new", "hello", mtime=300),
        _rec("mid", "HELLO", mtime=200),
        _rec("single", "Bye"),
    ]

    index = remote_index.build(records)

    assert index.primary[Key("hello")].record_id == "new"
    assert index.primary[Key("bye")].record_id == "single"
    assert sorted(index.to_delete_as_duplicate) == ["mid", "old"]
    assert index.duplicate_keys["old"] == Key("Hello")


def test_build_missing_modified_time_counts_as_zero():
    index = remote_index.build([_rec("a", "K"), _rec("b", "K", mtime=1)])

    assert index.primary[Key("K")].record_id == "b"
    assert index.to_delete_as_duplicate == ["a"]


def test_build_raises_conflict_for_duplicate_in_translation():
    records = [
        _rec("r1", "Dup", Status.IN_TRANSLATION, mtime=1),
        _rec("r2", "dup", Status.COMPLETED, mtime=2),
        _rec("r3", "Other"),
    ]

    with pytest.raises(ConflictError) as exc:
        remote_index.build(records)

    assert exc.value.key.lower() == "dup"
    assert sorted(exc.value.record_ids) == ["r1", "r2"]
    assert exc.value.in_translation_ids == ["r1"]
    assert "record_id=r1" in str(exc.value)


def test_single_in_translation_record_is_not_a_conflict():
    index = remote_index.build([_rec("r1", "Solo", Status.IN_TRANSLATION)])

    assert index.primary[Key("solo")].record_id == "r1"
    assert index.to_delete_as_duplicate == []


def test_fetch_records_follows_page_tokens():
    remote = _PagedRemote(
        [
            RecordPage(items=[{"record_id": "a", "fields": {"Key": "A", "Status": "未完成"}}], page_token="p2"),
            RecordPage(items=[{"record_id": "b", "fields": {"Key": "B", "Status": "已完成"}}], page_token=""),
        ]
    )

    records = asyncio.run(remote_index.fetch_records(remote, "tbl", RecordDecoder(["en-US"])))

    assert [r.record_id for r in records] == ["a", "b"]
    assert remote.tokens == [None, "p2"]


def test_fetch_raw_records_detects_token_loop():
    remote = _PagedRemote([RecordPage(items=[], page_token="same"), RecordPage(items=[], page_token="same")])

    with pytest.raises(RemoteApiError, match="page_token_loop"):
        asyncio.run(remote_index.fetch_raw_records(remote, "tbl"))
