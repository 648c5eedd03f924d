"""
Tests for script command dispatch on the store interface
"""

import pytest

from vuln_sync.core.exceptions import StoreException


class TestExecute:

    @pytest.mark.asyncio
    async def test_json_set_parses_document(self, db):
        await db.execute("JSON.SET", "cves:CVE-1", "$", '{"cve_id": "CVE-1", "affected": []}')
        assert await db.json_get("cves:CVE-1") == {"cve_id": "CVE-1", "affected": []}

    @pytest.mark.asyncio
    async def test_verbs_are_case_insensitive(self, db):
        await db.execute("set", "alias:A", "CVE-1")
        assert await db.get_value("alias:A") == "CVE-1"

    @pytest.mark.asyncio
    async def test_lpush_prepends(self, db):
        await db.execute("LPUSH", "ingestions:updates", "first")
        length = await db.execute("LPUSH", "ingestions:updates", "second")
        assert length == 2
        assert await db.lindex("ingestions:updates", 0) == "second"

    @pytest.mark.asyncio
    async def test_del_and_flushall(self, db):
        await db.execute("SET", "alias:A", "CVE-1")
        await db.execute("SET", "alias:B", "CVE-2")
        assert await db.execute("DEL", "alias:A", "alias:missing") == 1
        await db.execute("FLUSHALL")
        assert await db.get_value("alias:B") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command,args", [
        ("HSET", ("k", "f", "v")),
        ("SET", ("only-key",)),
        ("JSON.SET", ("k", "$")),
        ("JSON.SET", ("k", "$.summary", '"x"')),
        ("JSON.SET", ("k", "$", "{not json")),
        ("LPUSH", ("k",)),
        ("DEL", ()),
        ("FLUSHALL", ("now",)),
    ])
    async def test_rejected_commands(self, db, command, args):
        with pytest.raises(StoreException) as exc_info:
            await db.execute(command, *args)
        assert exc_info.value.source_name == 'store'

    @pytest.mark.asyncio
    async def test_document_replaces_value_under_same_key(self, db):
        await db.execute("SET", "cves:CVE-1", "plain")
        await db.execute("JSON.SET", "cves:CVE-1", "$", '{"cve_id": "CVE-1"}')
        assert await db.get_value("cves:CVE-1") is None
        assert [k async for k in db.scan("cves:")] == ["cves:CVE-1"]
