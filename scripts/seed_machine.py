import argparse
import os
import sys

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from gambit.config import settings
from gambit.core.database import Database
from gambit.core.economy import BonusLedger, Treasury
from gambit.core.security import is_valid_player


def seed_machine(pool: int, player: str, amount: int, credits: int):
    """Funds the pool and a test player in the configured database."""
    db = Database(settings.paths.get_db_path())
    treasury = Treasury(db)
    try:
        if pool > 0:
            print(f"Pool balance: {treasury.fund_pool(pool)}")
        if amount > 0:
            print(f"Wallet of '{player}': {treasury.deposit(player, amount)}")
        if credits > 0:
            print(f"Bonus credits of '{player}': {BonusLedger(db).mint(player, credits)}")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Degen Gambit store")
    parser.add_argument("--pool", type=int, default=64 * 100 * settings.machine.cost_to_spin)
    parser.add_argument("--player", default="testuser")
    parser.add_argument("--amount", type=int, default=100 * settings.machine.cost_to_spin)
    parser.add_argument("--credits", type=int, default=0)
    args = parser.parse_args()

    if not is_valid_player(args.player):
        parser.error(f"invalid player identity: {args.player}")

    seed_machine(args.pool, args.player, args.amount, args.credits)
