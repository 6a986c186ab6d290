from __future__ import annotations

from pathlib import Path

from yield_crawler.infra import UserAgentPool


def test_user_agent_pool_reads_list_and_file(tmp_path: Path) -> None:
    ua_file = tmp_path / "agents.txt"
    ua_file.write_text("UA-file\n\n", encoding="utf-8")
    pool = UserAgentPool(["UA-list", "  "], file_path=ua_file)
    assert len(pool) == 2
    assert pool.get() in {"UA-list", "UA-file"}


def test_user_agent_pool_from_config(tmp_path: Path) -> None:
    assert UserAgentPool.from_config(None) is None
    assert UserAgentPool.from_config([]) is None
    assert len(UserAgentPool.from_config(["A", "B"])) == 2

    ua_file = tmp_path / "agents.txt"
    ua_file.write_text("UA-1\n", encoding="utf-8")
    assert UserAgentPool.from_config(ua_file).get() == "UA-1"


def test_empty_pool_returns_none() -> None:
    assert UserAgentPool().get() is None
