import json

import pytest

from synthetix_scripts.commands.status import bytes32, bytes32_to_text, collect_status, load_contracts
from synthetix_scripts.commands.synth_status import synth_suspensions
from synthetix_scripts.deployments import get_source_abi
from synthetix_scripts.errors import InvalidInput
from synthetix_scripts.on_chain.abi import Contract

from conftest import ALICE, fn_abi

NOW = 1_700_000_000
SUSD = bytes.fromhex(bytes32("sUSD")[2:])
SNX = bytes.fromhex(bytes32("SNX")[2:])
REWARDS_DISTRIBUTION = "0x" + "d1" * 20

ADDRESSES = {
    "Synthetix": "0x" + "01" * 20,
    "DebtCache": "0x" + "02" * 20,
    "SynthetixState": "0x" + "03" * 20,
    "SupplySchedule": "0x" + "04" * 20,
    "FeePool": "0x" + "05" * 20,
    "FeePoolState": "0x" + "06" * 20,
    "AddressResolver": "0x" + "07" * 20,
    "SystemSettings": "0x" + "08" * 20,
    "ExchangeRates": "0x" + "09" * 20,
    "Issuer": "0x" + "0a" * 20,
    "SystemStatus": "0x" + "0b" * 20,
}

# name -> [(abi entry, signature, output types, result)]
VIEWS = {
    "Synthetix": [
        (fn_abi("anySynthOrSNXRateIsInvalid", [], ["bool"]), "anySynthOrSNXRateIsInvalid()", ["bool"], [False]),
        (fn_abi("totalSupply"), "totalSupply()", ["uint256"], [100 * 10**18]),
    ],
    "DebtCache": [
        (
            fn_abi("cacheInfo", [], [("debt", "uint256"), ("timestamp", "uint256"), ("isInvalid", "bool"), ("isStale", "bool")]),
            "cacheInfo()",
            ["uint256", "uint256", "bool", "bool"],
            [5, NOW, False, True],
        ),
    ],
    "SynthetixState": [
        (fn_abi("issuanceData", ["address"], ["uint256", "uint256"]), "issuanceData(address)", ["uint256", "uint256"], [5, 1]),
    ],
    "SupplySchedule": [
        (fn_abi("mintableSupply"), "mintableSupply()", ["uint256"], [0]),
    ],
    "FeePool": [
        (fn_abi("feePeriodDuration"), "feePeriodDuration()", ["uint256"], [604800]),
        (
            fn_abi("recentFeePeriods", ["uint256"], [("feePeriodId", "uint64"), ("startTime", "uint64"), ("feesToDistribute", "uint256")]),
            "recentFeePeriods(uint256)",
            ["uint64", "uint64", "uint256"],
            lambda idx: [40 - idx, 0, 7],
        ),
        (fn_abi("feesByPeriod", ["address"], ["uint256[2][2]"]), "feesByPeriod(address)", ["uint256[2][2]"], [[[1, 2], [3, 4]]]),
        (fn_abi("getLastFeeWithdrawal", ["address"]), "getLastFeeWithdrawal(address)", ["uint256"], [39]),
        (
            fn_abi("effectiveDebtRatioForPeriod", ["address", "uint256"]),
            "effectiveDebtRatioForPeriod(address,uint256)",
            ["uint256"],
            [10**16],
        ),
    ],
    "FeePoolState": [
        (
            fn_abi("getAccountsDebtEntry", ["address", "uint256"], ["uint256", "uint256"]),
            "getAccountsDebtEntry(address,uint256)",
            ["uint256", "uint256"],
            [10**26, 3],
        ),
    ],
    "AddressResolver": [
        (fn_abi("getAddress", ["bytes32"], ["address"]), "getAddress(bytes32)", ["address"], [REWARDS_DISTRIBUTION]),
    ],
    "SystemSettings": [
        (fn_abi("rateStalePeriod"), "rateStalePeriod()", ["uint256"], [90000]),
    ],
    "ExchangeRates": [
        (fn_abi("rateForCurrency", ["bytes32"]), "rateForCurrency(bytes32)", ["uint256"], lambda key: [10**18 if key == SUSD else 2 * 10**18]),
        (fn_abi("rateIsInvalid", ["bytes32"], ["bool"]), "rateIsInvalid(bytes32)", ["bool"], lambda key: [key == SNX]),
        (fn_abi("lastRateUpdateTimes", ["bytes32"]), "lastRateUpdateTimes(bytes32)", ["uint256"], [NOW - 600]),
    ],
    "Issuer": [
        (fn_abi("availableCurrencyKeys", [], ["bytes32[]"]), "availableCurrencyKeys()", ["bytes32[]"], [[SUSD]]),
    ],
    "SystemStatus": [
        (
            fn_abi("synthSuspension", ["bytes32"], [("suspended", "bool"), ("reason", "uint248")]),
            "synthSuspension(bytes32)",
            ["bool", "uint248"],
            lambda key: [key != SUSD, 0 if key == SUSD else 55],
        ),
    ],
}


@pytest.fixture
def system(chain):
    contracts = {}
    for name, views in VIEWS.items():
        for _, signature, out_types, result in views:
            chain.stub(ADDRESSES[name], signature, out_types, result)
        contracts[name] = Contract(chain, ADDRESSES[name], [v[0] for v in views])
    return contracts


def test_bytes32_text():
    assert bytes32("sUSD") == "0x73555344" + "00" * 28
    assert bytes32_to_text(bytes32("sUSD")) == "sUSD"


def test_collect_status(system, chain):
    report = collect_status(system, [ALICE], block_tag=123, now=NOW)

    assert report["Synthetix"] == {"anySynthOrSNXRateIsInvalid": False, "totalSupply": "100.0"}
    assert report["DebtCache"] == {"cacheInfo.isInvalid": False, "cacheInfo.isStale": True}
    assert report["SynthetixState"] == {f"issuanceData({ALICE})": [5, 1]}
    assert report["FeePool"]["feePeriod 1"] == {
        "feePeriodId": 39,
        "startTime": "1970-01-01T00:00:00+00:00",
        "feesToDistribute": 7,
    }
    assert report["FeePool"][f"feesByPeriod({ALICE})"] == [[1, 2], [3, 4]]
    assert report["FeePoolState"] == {f"getAccountsDebtEntry({ALICE}, 0)": [10**26, 3]}
    assert report["AddressResolver"] == {"getAddress(RewardsDistribution)": REWARDS_DISTRIBUTION}
    assert report["ExchangeRates"] == {
        "sUSD rate": "1.0 (Updated 10 minutes ago)",
        "SNX rate": "2.0 (Updated 10 minutes ago) INVALID",
    }
    assert "lastMintEvent" not in report["SupplySchedule"]
    # every read is pinned to the requested block
    assert set(chain.call_blocks) == {hex(123)}


def test_synth_suspensions(system, chain, caplog):
    synths = synth_suspensions(system["Issuer"], system["SystemStatus"])
    assert synths == [("sUSD", bytes32("sUSD"), False, 0)]

    chain.stub(ADDRESSES["Issuer"], "availableCurrencyKeys()", ["bytes32[]"], [[SUSD, SNX]])
    synths = synth_suspensions(system["Issuer"], system["SystemStatus"])
    assert synths[1] == ("SNX", bytes32("SNX"), True, 55)
    assert "Suspended: True (55)" in caplog.text


@pytest.fixture
def deployment(tmp_path):
    abi = [fn_abi("totalSupply")]
    data = {
        "targets": {
            "Synthetix": {"address": ADDRESSES["Synthetix"], "source": "Synthetix"},
            "ProxyERC20": {"address": "0x" + "ee" * 20, "source": "ProxyERC20"},
        },
        "sources": {"Synthetix": {"abi": abi}, "MintableSynthetix": {"abi": abi + [fn_abi("mintSecondary")]}},
    }
    (tmp_path / "deployment.json").write_text(json.dumps(data))
    return tmp_path


def test_source_abi_follows_the_target(deployment):
    assert [e["name"] for e in get_source_abi(deployment, "Synthetix")] == ["totalSupply"]
    assert len(get_source_abi(deployment, "Synthetix", "MintableSynthetix")) == 2
    with pytest.raises(InvalidInput):
        get_source_abi(deployment, "ProxyERC20")


def test_load_contracts_uses_ovm_sources(deployment, chain):
    l1 = load_contracts(chain, deployment, ["Synthetix"])
    l2 = load_contracts(chain, deployment, ["Synthetix"], use_ovm=True)
    assert l1["Synthetix"].address == ADDRESSES["Synthetix"]
    assert len(l1["Synthetix"].abi) == 1
    assert len(l2["Synthetix"].abi) == 2
