"""
Money movement for the slot machine.

- Treasury: player wallets and the shared prize pool
- BonusLedger: bonus credits that pay for boosted spins
"""

from gambit.core.database import Database, POOL_ACCOUNT
from gambit.core.exceptions import InsufficientBonusCredits, InsufficientValue
from gambit.core.logger import get_logger

logger = get_logger("economy")


class Treasury:
    """Moves integer amounts between player wallets and the pool."""

    def __init__(self, database: Database):
        self.db = database

    def balance_of(self, address: str) -> int:
        return self.db.get_balance(address)

    def pool_balance(self) -> int:
        return self.db.get_pool_balance()

    def deposit(self, address: str, amount: int) -> int:
        """Credit a wallet from outside the machine (faucet / top-up)."""
        if amount <= 0:
            raise ValueError("deposit amount must be positive")
        new_balance = self.db.update_balance(address, amount)
        logger.info("Wallet deposit", extra={"address": address, "amount": amount})
        return new_balance

    def fund_pool(self, amount: int) -> int:
        return self.deposit(POOL_ACCOUNT, amount)

    def collect(self, player: str, amount: int) -> int:
        """Move a payment from the player's wallet into the pool."""
        with self.db.transaction():
            balance = self.db.get_balance(player)
            if balance < amount:
                raise InsufficientValue(
                    f"wallet holds {balance}, cannot send {amount}"
                )
            self.db.update_balance(player, -amount)
            return self.db.update_balance(POOL_ACCOUNT, amount)

    def disburse(self, player: str, amount: int) -> int:
        """Pay `amount` from the pool to the player. Returns the player's balance."""
        with self.db.transaction():
            # update_balance refuses to overdraw the pool
            self.db.update_balance(POOL_ACCOUNT, -amount)
            return self.db.update_balance(player, amount)


class BonusLedger:
    """Bonus credits: minted by streaks, burned by boosted spins."""

    def __init__(self, database: Database):
        self.db = database

    def balance_of(self, player: str) -> int:
        return self.db.get_credits(player)

    def total_supply(self) -> int:
        return self.db.get_total_credits()

    def mint(self, player: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("mint amount must not be negative")
        return self.db.update_credits(player, amount)

    def burn(self, player: str, amount: int) -> int:
        with self.db.transaction():
            balance = self.db.get_credits(player)
            if balance < amount:
                raise InsufficientBonusCredits(
                    f"{player} holds {balance} bonus credits, needs {amount}"
                )
            return self.db.update_credits(player, -amount)
