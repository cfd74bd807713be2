"""
Credit Service
Per-user balance: read with lazy initialisation, single-statement debit.
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.core.exceptions import QuotaExhaustedError
from nanostudio.models.credit import Credit

logger = logging.getLogger(__name__)


class CreditService:
    """Credit balance operations, scoped by user id."""

    def __init__(self, db: Session, default_amount: int = None):
        self.db = db
        self.default_amount = settings.DEFAULT_CREDITS if default_amount is None else default_amount

    def get_balance(self, user_id: int) -> int:
        """Current balance, creating the row with the default amount if absent."""
        credit = self.db.get(Credit, user_id)
        if credit is None:
            credit = Credit(
                user_id=user_id,
                amount=self.default_amount,
                last_refill_date=date.today().isoformat(),
            )
            self.db.add(credit)
            self.db.commit()
            logger.info(f"[Credits] Initialized user {user_id} with {self.default_amount} credits")
        return credit.amount

    def ensure_available(self, user_id: int) -> int:
        """Refuse generation when the balance is zero or negative."""
        balance = self.get_balance(user_id)
        if balance <= 0:
            raise QuotaExhaustedError("Out of credits", details={"credits": balance})
        return balance

    def debit(self, user_id: int, amount: int = 1) -> int:
        """Decrement in one UPDATE statement and return the new balance."""
        self.db.query(Credit).filter(Credit.user_id == user_id).update(
            {Credit.amount: Credit.amount - amount}, synchronize_session=False
        )
        self.db.commit()
        self.db.expire_all()
        balance = self.get_balance(user_id)
        logger.info(f"[Credits] Debited {amount} from user {user_id}, {balance} remaining")
        return balance
