import pytest

from synthetix_scripts.errors import UnexpectedDeploymentSet
from synthetix_scripts.on_chain.events import (
    KnownDeployment,
    collect_candidates,
    dedupe_by_tx,
    fetch_logs,
    scan_events,
    scan_versions,
    verify_deployment_set,
)
from synthetix_scripts.variables import KNOWN_BRIDGES, WITHDRAWAL_INITIATED_EVENT

from conftest import ALICE, BOB, CAROL, bridge_logs, make_log

OLD, NEW = (KnownDeployment.from_dict(d) for d in KNOWN_BRIDGES)


def test_scan_events_decodes_each_type(chain):
    chain.logs = bridge_logs()
    found = list(scan_events(chain, OLD.address, list(OLD.events.values()), OLD.from_block, OLD.from_block + 10))
    assert [e.name for e in found] == ["Deposit", "ExportedVestingEntries", "ExportedVestingEntries"]
    assert found[1].args["vestingEntries"] == [[1, 5]]


def test_dedupe_by_tx_drops_migrations_from_deposit_txs(chain):
    chain.logs = bridge_logs()
    parsed = list(scan_events(chain, OLD.address, list(OLD.events.values()), OLD.from_block, OLD.from_block + 10))
    deposits = [e for e in parsed if e.name == "Deposit"]
    migrations = [e for e in parsed if e.name == "ExportedVestingEntries"]
    kept = dedupe_by_tx(deposits, migrations)
    assert [e.transaction_hash for e in kept] == ["0x02"]


def test_candidates_are_unified_across_bridges(chain):
    chain.logs = bridge_logs()
    candidates = collect_candidates(chain, [OLD, NEW], to_block=NEW.from_block + 10)
    # deposit target differs per ABI: `account` on the old bridge, `_to` on the new one
    assert candidates == [ALICE, BOB, CAROL]


def test_fetch_logs_shrinks_the_window_on_limit_errors(chain):
    chain.logs = [make_log(WITHDRAWAL_INITIATED_EVENT, CAROL, f"0x{i:02x}", 1000 * i, [ALICE], [i]) for i in range(1, 6)]
    chain.log_range_limit = 1500
    logs = fetch_logs(chain, CAROL, [[WITHDRAWAL_INITIATED_EVENT.topic]], 0, 6000, step=5000, min_step=128)
    assert len(logs) == 5
    assert chain.methods.count("eth_getLogs") > 5


def test_scan_versions_covers_every_address(chain):
    v1, v2 = "0x" + "1" * 40, "0x" + "2" * 40
    chain.logs = [
        make_log(WITHDRAWAL_INITIATED_EVENT, v1, "0x01", 10, [ALICE], [1]),
        make_log(WITHDRAWAL_INITIATED_EVENT, v2, "0x02", 20, [BOB], [2]),
    ]
    found = scan_versions(chain, [v1, v2], WITHDRAWAL_INITIATED_EVENT, "earliest", 100)
    assert [e.args["account"] for e in found] == [ALICE, BOB]


def test_verify_deployment_set():
    expected = [OLD.address, NEW.address]
    verify_deployment_set(expected, [a.upper().replace("0X", "0x") for a in expected])
    with pytest.raises(UnexpectedDeploymentSet):
        verify_deployment_set(expected, [OLD.address])
    with pytest.raises(UnexpectedDeploymentSet):
        verify_deployment_set(expected, [NEW.address, OLD.address])
    with pytest.raises(UnexpectedDeploymentSet):
        verify_deployment_set(expected, expected + ["0x" + "3" * 40])
