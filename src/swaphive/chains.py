"""The two tokens the bridge exchanges and the ledgers that carry them.

- HIVE lives on the Hive blockchain (primary ledger)
- SWAP.HIVE is its wrapped form on the Hive Engine side chain (side ledger)

Hive Engine operations are carried by Hive ``custom_json`` operations with
id ``ssc-mainnet-hive``.
"""

from enum import Enum

ENGINE_CUSTOM_JSON_ID = "ssc-mainnet-hive"
ENGINE_AUTHORITY = "Active"


class Token(str, Enum):
    """Swappable token."""

    HIVE = "HIVE"
    SWAP_HIVE = "SWAP.HIVE"

    @property
    def is_primary(self) -> bool:
        """True for the base asset on the primary ledger."""
        return self is Token.HIVE

    @property
    def counterpart(self) -> "Token":
        return Token.SWAP_HIVE if self is Token.HIVE else Token.HIVE

    @classmethod
    def parse(cls, value: "str | Token") -> "Token":
        """Parse a symbol case-insensitively.

        Raises:
            ValueError: For unknown symbols
        """
        if isinstance(value, Token):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unsupported token: {value}")
