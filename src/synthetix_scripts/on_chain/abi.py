"""
Contract access. Calls and transactions go through a web3 contract built from
the ABI; logs fetched over raw JSON-RPC are decoded here with eth_abi.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_utils import is_address, keccak, to_checksum_address
from web3.contract.contract import ContractFunction
from web3.exceptions import ABIFunctionNotFound

from synthetix_scripts.on_chain.rpc import BlockTag, RpcClient, hex_to_int, topic_to_address


def canonical_type(param: Dict[str, Any]) -> str:
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def hx(b: Optional[bytes]) -> str:
    if not b:
        return "0x"
    return "0x" + bytes(b).hex()


def normalize_value(value: Any) -> Any:
    """eth_abi output -> JSON friendly: lower-case addresses, hex bytes, lists for tuples."""
    if isinstance(value, (bytes, bytearray)):
        return hx(value)
    if isinstance(value, str) and value.startswith("0x") and len(value) == 42:
        return value.lower()
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def _data_bytes(data_hex: Optional[str]) -> bytes:
    if not data_hex or data_hex == "0x":
        return b""
    return bytes.fromhex(data_hex[2:] if data_hex.startswith("0x") else data_hex)



@dataclass
class ParsedEvent:
    name: str
    args: Dict[str, Any]
    address: str
    transaction_hash: str
    log_index: int
    block_number: int


@dataclass
class Event:
    name: str
    inputs: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_abi(cls, entry: Dict[str, Any]) -> "Event":
        if entry.get("type") != "event":
            raise ValueError(f"not an event ABI entry: {entry.get('name')}")
        return cls(name=entry["name"], inputs=list(entry.get("inputs", [])))

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(canonical_type(i) for i in self.inputs)})"

    @property
    def topic(self) -> str:
        return "0x" + keccak(text=self.signature).hex()

    def decode(self, log: Dict[str, Any]) -> ParsedEvent:
        topics: List[str] = log.get("topics") or []
        if not topics or topics[0].lower() != self.topic:
            raise ValueError(f"log is not a {self.name} event")

        indexed = [i for i in self.inputs if i.get("indexed")]
        plain = [i for i in self.inputs if not i.get("indexed")]
        args: Dict[str, Any] = {}

        for param, topic in zip(indexed, topics[1:]):
            typ = canonical_type(param)
            if typ == "address":
                args[param["name"]] = topic_to_address(topic)
            elif typ not in ("string", "bytes") and "[" not in typ and not typ.startswith("("):
                (value,) = abi_decode([typ], _data_bytes(topic))
                args[param["name"]] = normalize_value(value)
            else:
                # dynamic indexed values are only available as their hash
                args[param["name"]] = topic.lower()

        if plain:
            values = abi_decode([canonical_type(p) for p in plain], _data_bytes(log.get("data")))
            for param, value in zip(plain, values):
                args[param["name"]] = normalize_value(value)

        return ParsedEvent(
            name=self.name,
            args=args,
            address=(log.get("address") or "").lower(),
            transaction_hash=(log.get("transactionHash") or "").lower(),
            log_index=hex_to_int(log.get("logIndex")),
            block_number=hex_to_int(log.get("blockNumber")),
        )


def events_from_abi(abi: Iterable[Dict[str, Any]]) -> Dict[str, Event]:
    return {e["name"]: Event.from_abi(e) for e in abi if e.get("type") == "event"}


def web3_args(args: Sequence[Any]) -> List[Any]:
    """web3 only accepts checksummed addresses."""
    out: List[Any] = []
    for arg in args:
        if isinstance(arg, str) and arg.startswith("0x") and len(arg) == 42 and is_address(arg):
            out.append(to_checksum_address(arg))
        elif isinstance(arg, (list, tuple)):
            out.append(web3_args(arg))
        else:
            out.append(arg)
    return out


class Contract:
    """A deployed contract, called and transacted with through web3."""

    def __init__(self, rpc: RpcClient, address: str, abi: Iterable[Dict[str, Any]] = ()):
        self.rpc = rpc
        self.address = address.lower()
        self.abi = list(abi)
        self._contract = rpc.web3.eth.contract(address=to_checksum_address(address), abi=self.abi)

    def function(self, name: str, *args: Any) -> ContractFunction:
        try:
            fn = getattr(self._contract.functions, name)
        except ABIFunctionNotFound:
            raise KeyError(f"function {name} not in the abi of {self.address}") from None
        return fn(*web3_args(args))

    def call(self, name: str, *args: Any, block_tag: BlockTag = "latest") -> Any:
        return normalize_value(self.function(name, *args).call(block_identifier=block_tag))

    def call_named(self, name: str, *args: Any, block_tag: BlockTag = "latest") -> Dict[str, Any]:
        """Like `call`, keyed by the output names of the function."""
        entry = next(
            (e for e in self.abi if e.get("type") == "function" and e.get("name") == name and len(e.get("inputs", [])) == len(args)),
            None,
        )
        if entry is None:
            raise KeyError(f"function {name} not in the abi of {self.address}")
        outputs = entry.get("outputs", [])
        values = self.call(name, *args, block_tag=block_tag)
        if len(outputs) == 1:
            values = [values]
        return {o.get("name") or str(i): v for i, (o, v) in enumerate(zip(outputs, values))}
