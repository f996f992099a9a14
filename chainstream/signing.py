# chainstream/signing.py
from eth_account import Account
from eth_account.signers.local import LocalAccount


class OperatingIdentity:
    """The single signing wallet shared read-only by every engine."""
    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "OperatingIdentity":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, tx: dict) -> bytes:
        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)
