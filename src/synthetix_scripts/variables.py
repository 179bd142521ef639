from synthetix_scripts.on_chain.abi import Event

NETWORKS = ["mainnet", "kovan", "goerli", "rinkeby", "ropsten", "local"]

# Default L2 endpoints when neither --provider-url nor PROVIDER_URL is given
DEFAULT_L2_PROVIDERS = {
    "mainnet": "https://mainnet.optimism.io",
    "kovan": "https://kovan.optimism.io",
}

# Well-known Optimism mainnet token addresses, used when no deployment data is available
OVM_MAINNET_TOKENS = {
    "ProxyERC20": "0x8700daec35af8ff88c16bdf0418774cb3d7599b4",  # SNX
    "ProxyERC20sUSD": "0x8c6f28f2f1a3c87f0f938b96d27520d9751ec8d9",  # sUSD
    "WETH": "0x4200000000000000000000000000000000000006",
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_GAS_LIMIT = 5_000_000
DEFAULT_RECEIPT_TIMEOUT_S = 600
READ_POOL_WIDTH = 15

# --------- Function ABIs ---------
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# --------- Event ABIs ---------
TRANSFER_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "from", "type": "address"},
        {"indexed": True, "name": "to", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ],
    "name": "Transfer",
    "type": "event",
}

ISSUED_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "account", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ],
    "name": "Issued",
    "type": "event",
}

WITHDRAWAL_INITIATED_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "account", "type": "address"},
        {"indexed": False, "name": "amount", "type": "uint256"},
    ],
    "name": "WithdrawalInitiated",
    "type": "event",
}

EXPORTED_VESTING_ENTRIES_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "account", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "escrowedAccountBalance", "type": "uint256"},
        {
            "components": [
                {"internalType": "uint64", "name": "endTime", "type": "uint64"},
                {"internalType": "uint256", "name": "escrowAmount", "type": "uint256"},
            ],
            "indexed": False,
            "internalType": "struct VestingEntries.VestingEntry[]",
            "name": "vestingEntries",
            "type": "tuple[]",
        },
    ],
    "name": "ExportedVestingEntries",
    "type": "event",
}

DEPOSIT_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "account", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
    ],
    "name": "Deposit",
    "type": "event",
}

DEPOSIT_INITIATED_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "address", "name": "_from", "type": "address"},
        {"indexed": False, "internalType": "address", "name": "_to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "_amount", "type": "uint256"},
    ],
    "name": "DepositInitiated",
    "type": "event",
}

TRANSFER_EVENT = Event.from_abi(TRANSFER_EVENT_ABI)
ISSUED_EVENT = Event.from_abi(ISSUED_EVENT_ABI)
WITHDRAWAL_INITIATED_EVENT = Event.from_abi(WITHDRAWAL_INITIATED_EVENT_ABI)

# --------- L1 -> L2 bridges ---------
# SynthetixBridgeToOptimism has been deployed twice on mainnet; deposits and
# escrow migrations are spread across both.
BRIDGE_REGISTRY_CONTRACT = "SynthetixBridgeToOptimism"
KNOWN_BRIDGES = [
    {
        "address": "0x045e507925d2e05d114534d0810a1abd94aca8d6",
        "from_block": 11656238,
        "deposit_event": "Deposit",
        "deposit_target": "account",
        "migrate_event": "ExportedVestingEntries",
        "migrate_target": "account",
        "abi": [DEPOSIT_EVENT_ABI, EXPORTED_VESTING_ENTRIES_EVENT_ABI],
    },
    {
        "address": "0xcd9d4988c0ae61887b075ba77f08cbfad2b65068",
        "from_block": 12409013,
        "deposit_event": "DepositInitiated",
        "deposit_target": "_to",
        "migrate_event": "ExportedVestingEntries",
        "migrate_target": "account",
        "abi": [DEPOSIT_INITIATED_EVENT_ABI, EXPORTED_VESTING_ENTRIES_EVENT_ABI],
    },
]

# --------- SynthetixDebtShare (mainnet) ---------
DEBT_SHARE_ADDRESS = "0x89fcb32f29e509cc42d0c8b6f058c993013a843f"
DEBT_SHARE_DEPLOYED_BLOCK = 14169250
