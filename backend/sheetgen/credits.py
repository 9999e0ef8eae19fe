from typing import Protocol, runtime_checkable

GENERATION_COST = 1


class InsufficientCreditsError(Exception):
    def __init__(self, account_id: str, required: int):
        self.account_id = account_id
        self.required = required
        super().__init__(f"Account {account_id} does not have {required} credit(s) available")


@runtime_checkable
class CreditLedger(Protocol):
    """
    Account balance store consumed by the HTTP layer.

    ``consume`` must raise ``InsufficientCreditsError`` rather than go negative.
    """

    async def consume(self, account_id: str, amount: int) -> None: ...

    async def credit(self, account_id: str, amount: int) -> None: ...
