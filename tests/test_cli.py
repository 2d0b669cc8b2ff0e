import random

import pytest

from leasechain.chain import GENESIS_HASH, extend_chain
from leasechain.cli import build_parser, main, run_demo
from leasechain.config import ChainConfig, LockConfig
from leasechain.diagnostics import SequenceRecorder
from leasechain.exceptions import LockAcquisitionExhausted
from leasechain.memory import InMemoryStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("LEASECHAIN_ITEM_ID", "LEASECHAIN_WORK_FACTOR", "LEASECHAIN_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])

    assert args.iterations == [3, 4, 5]
    assert args.store == "memory"


def test_memory_demo_extends_chain(capsys) -> None:
    exit_code = main(["--work-factor", "1", "--seed", "5", "3", "4", "5"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "All updates completed successfully" in out
    assert "Full sequence of events:" in out
    assert out.count("Outcome: Succeeded ✓") == 3
    assert f"Chain head: {extend_chain(GENESIS_HASH, 12, work_factor=1)}" in out


def test_demo_reports_exhaustion(capsys) -> None:
    exit_code = main(["--work-factor", "1", "--max-retries", "1", "--seed", "0", "1", "1", "1"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert "Error in main: Failed to acquire lock for item HASH-CHAIN-1" in captured.err
    assert "Outcome: Failed ✗" in captured.out


@pytest.mark.asyncio
async def test_winner_releases_lease_when_peers_give_up() -> None:
    store = InMemoryStore(latency=0.005)
    await store.put_record({"id": "HASH-CHAIN-1", "currentHash": GENESIS_HASH, "lastUpdated": 0})
    config = ChainConfig(item_id="HASH-CHAIN-1", work_factor=200, lock=LockConfig(max_retries=1))
    recorder = SequenceRecorder()

    with pytest.raises(LockAcquisitionExhausted):
        await run_demo(store, config, [3, 1, 1], recorder, random.Random(0))

    item = await store.get_record("HASH-CHAIN-1")
    assert "lockedBy" not in item
    assert "lockTime" not in item
    assert item["currentHash"] == extend_chain(GENESIS_HASH, 3, work_factor=200)
    assert any(event.event == "Chain extended" for event in recorder.events)
