from typing import Any, Optional


class CorruptLedger(ValueError):
    """The ledger file exists but cannot be used; an operator has to fix it."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"corrupt ledger at {path}: {reason}")
        self.path = path
        self.reason = reason


class UnexpectedDeploymentSet(RuntimeError):
    def __init__(self, expected: list, registered: list) -> None:
        super().__init__(
            f"mismatch between registered and expected deployments: "
            f"expected {expected}, registered {registered}"
        )
        self.expected = expected
        self.registered = registered


class RpcError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        data: Any = None,
        status_code: Optional[int] = None,
        retry_after_s: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.data = data
        self.status_code = status_code
        self.retry_after_s = retry_after_s


class Reverted(RuntimeError):
    def __init__(self, tx_hash: Optional[str], reason: Optional[str]) -> None:
        super().__init__(f"transaction {tx_hash} reverted: {reason or '<no reason>'}")
        self.tx_hash = tx_hash
        self.reason = reason


class ReceiptTimeout(RuntimeError):
    def __init__(self, tx_hash: str, timeout_s: float) -> None:
        super().__init__(f"no receipt for {tx_hash} after {timeout_s:.0f}s")
        self.tx_hash = tx_hash
        self.timeout_s = timeout_s


class InsufficientSignerBalance(RuntimeError):
    def __init__(self, signer: str, balance: int, needed: int) -> None:
        super().__init__(f"{needed} need to be distributed and the signer {signer} only has {balance}")
        self.signer = signer
        self.balance = balance
        self.needed = needed


class InvalidInput(ValueError):
    pass


class Cancelled(Exception):
    """The operator declined a confirmation prompt."""
