from eth_abi import decode as abi_decode

from synthetix_scripts.commands import reward_escrow_migration as migration
from synthetix_scripts.ledger.store import load_ledger
from synthetix_scripts.on_chain.abi import Contract

from conftest import ALICE, BOB, CAROL, fn_abi

OLD_ESCROW = "0x" + "0e" * 20
NEW_ESCROW = "0x" + "2e" * 20
SCHEDULE_SLOTS = 8

OLD_ESCROW_ABI = [
    fn_abi("totalEscrowedAccountBalance", ["address"]),
    fn_abi("totalVestedAccountBalance", ["address"]),
    fn_abi("checkAccountSchedule", ["address"], [f"uint256[{SCHEDULE_SLOTS}]"]),
]
NEW_ESCROW_ABI = [
    fn_abi("totalBalancePendingMigration", ["address"]),
    fn_abi("totalEscrowedAccountBalance", ["address"]),
    fn_abi("numVestingEntries", ["address"]),
    fn_abi("migrateAccountEscrowBalances", ["address[]", "uint256[]", "uint256[]"], [], "nonpayable"),
    fn_abi("importVestingSchedule", ["address[]", "uint256[]", "uint256[]"], [], "nonpayable"),
]
BATCH_TYPES = ["address[]", "uint256[]", "uint256[]"]


def flat(*entries):
    out = [v for entry in entries for v in entry]
    return out + [0] * (SCHEDULE_SLOTS - len(out))


def stub_escrows(chain):
    # ALICE is untouched on V2; BOB was migrated but not imported; CAROL is done
    old = {
        ALICE: (100, 10, flat((1000, 60), (2000, 40))),
        BOB: (50, 0, flat((3000, 5))),
        CAROL: (7, 0, flat((4000, 7))),
    }
    new = {ALICE: (0, 0, 0), BOB: (50, 0, 0), CAROL: (0, 7, 1)}

    def by_account(table, i):
        return lambda address: [table[address.lower()][i]]

    chain.stub(OLD_ESCROW, "totalEscrowedAccountBalance(address)", ["uint256"], by_account(old, 0))
    chain.stub(OLD_ESCROW, "totalVestedAccountBalance(address)", ["uint256"], by_account(old, 1))
    chain.stub(OLD_ESCROW, "checkAccountSchedule(address)", [f"uint256[{SCHEDULE_SLOTS}]"], by_account(old, 2))
    chain.stub(NEW_ESCROW, "totalBalancePendingMigration(address)", ["uint256"], by_account(new, 0))
    chain.stub(NEW_ESCROW, "totalEscrowedAccountBalance(address)", ["uint256"], by_account(new, 1))
    chain.stub(NEW_ESCROW, "numVestingEntries(address)", ["uint256"], by_account(new, 2))


def contracts(chain):
    return Contract(chain, OLD_ESCROW, OLD_ESCROW_ABI), Contract(chain, NEW_ESCROW, NEW_ESCROW_ABI)


def sent_calldata(sender, function):
    data = sender.build(function, gas_price=1, gas_limit=1, nonce=0)["data"]
    return abi_decode(BATCH_TYPES, bytes.fromhex(data[10:]))


def test_parse_schedule_skips_empty_slots(caplog):
    schedule = migration.parse_schedule(ALICE, flat((1000, 60), (0, 5)))
    assert schedule == [["1000", "60"], ["0", "5"]]
    assert "one side 0" in caplog.text


def test_migration_then_import(make_ctx, chain, ledger_path):
    stub_escrows(chain)
    old, new = contracts(chain)
    ctx = make_ctx(migration.DEFAULT_TOTALS)

    summaries = migration.migrate(ctx, old, new, [ALICE, BOB, CAROL], gas_price=1)

    assert summaries["migrated"].confirmed == [ALICE]
    assert summaries["imported"].confirmed == [ALICE, BOB]
    assert len(chain.sent) == 2

    ledger = load_ledger(ledger_path)
    assert ledger.totals["accounts"] == "3"
    assert ledger.totals["escrowed"] == "157"
    assert ledger.totals["entries"] == "4"
    assert ledger.totals["migrated"] == "1"
    assert ledger.totals["imported"] == "2"
    alice = ledger.accounts[ALICE]
    assert alice["schedule"] == [["1000", "60"], ["2000", "40"]]
    assert alice["migratedTx"] == chain.sent[0]
    assert alice["importedTx"] == chain.sent[1]
    assert ledger.accounts[BOB]["pendingMigration"] is True
    assert "migrated" not in ledger.accounts[BOB]
    assert "imported" not in ledger.accounts[CAROL]


def test_batches_carry_the_recorded_amounts(make_ctx, chain, sender):
    stub_escrows(chain)
    old, new = contracts(chain)
    ctx = make_ctx(migration.DEFAULT_TOTALS)
    migration.read_escrows(ctx, old, new, [ALICE, BOB, CAROL])

    accounts, balances, vested = sent_calldata(sender, migration.migration_function(ctx.store, new)([ALICE]))
    assert [a.lower() for a in accounts] == [ALICE]
    assert list(balances) == [100]
    assert list(vested) == [10]

    owners, timestamps, entries = sent_calldata(sender, migration.import_function(ctx.store, new)([ALICE, BOB]))
    assert [a.lower() for a in owners] == [ALICE, ALICE, BOB]
    assert list(timestamps) == [1000, 2000, 3000]
    assert list(entries) == [60, 40, 5]


def test_rerun_sends_nothing_new(make_ctx, chain):
    stub_escrows(chain)
    old, new = contracts(chain)
    migration.migrate(make_ctx(migration.DEFAULT_TOTALS), old, new, [ALICE, BOB, CAROL], gas_price=1)
    reads = chain.methods.count("eth_call")

    summaries = migration.migrate(make_ctx(), old, new, [ALICE, BOB, CAROL], gas_price=1)
    assert summaries["migrated"].skipped == [ALICE]
    assert summaries["imported"].skipped == [ALICE, BOB]
    assert len(chain.sent) == 2
    assert chain.methods.count("eth_call") == reads


def test_failed_import_is_retried(make_ctx, chain):
    stub_escrows(chain)
    old, new = contracts(chain)
    chain.outcomes = ["ok", "revert"]
    first = migration.migrate(make_ctx(migration.DEFAULT_TOTALS), old, new, [ALICE, BOB, CAROL], gas_price=1)
    assert set(first["imported"].failed) == {ALICE, BOB}

    second = migration.migrate(make_ctx(), old, new, [ALICE, BOB, CAROL], gas_price=1)
    assert second["migrated"].skipped == [ALICE]
    assert second["imported"].confirmed == [ALICE, BOB]


def test_dry_run_only_reads(make_ctx, chain, ledger_path):
    stub_escrows(chain)
    old, new = contracts(chain)
    summaries = migration.migrate(make_ctx(migration.DEFAULT_TOTALS, dry_run=True), old, new, [ALICE, BOB], gas_price=1)
    assert summaries["migrated"].simulated == [ALICE]
    assert chain.sent == []
    assert "migrated" not in load_ledger(ledger_path).accounts[ALICE]


def test_entry_batches_keep_accounts_whole(make_ctx):
    ctx = make_ctx()
    ctx.store.update(ALICE, {"schedule": [["1", "1"], ["2", "2"]]})
    ctx.store.update(BOB, {"schedule": [["3", "3"]]})
    ctx.store.update(CAROL, {"schedule": [["4", "4"]] * 3})
    assert migration.pack_by_entries(ctx.store, [ALICE, BOB, CAROL], size=2) == [[ALICE], [BOB], [CAROL]]
    assert migration.pack_by_entries(ctx.store, [ALICE, BOB, CAROL], size=3) == [[ALICE, BOB], [CAROL]]


def test_accounts_file_must_be_valid(tmp_path):
    path = tmp_path / "accounts.json"
    path.write_text('[{"address": "%s"}, {"address": "%s"}]' % ("0x" + ALICE[2:].upper(), BOB))
    assert migration.read_accounts_file(path) == [ALICE, BOB]

    path.write_text('[{"address": "nope"}]')
    assert migration.main(["--account-json", str(path), "--provider-url", "http://127.0.0.1:9"]) == 1
