"""
Sponsor resolver.

Walks sponsor edges (patrocinador -> usuario) upwards from a buyer.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_ledger.models.account import Account
from mlm_ledger.repositories.account_repository import AccountRepository


class SponsorResolver:
    """
    Resolves sponsors by username.

    Lookups are cached for the lifetime of the resolver (one request), so
    a chain walk costs at most one query per ancestor.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize sponsor resolver."""
        self.account_repo = AccountRepository(session)
        self._cache: dict[str, Account | None] = {}

    async def resolve(self, username: str | None) -> Account | None:
        """
        Resolve a username to an account.

        Args:
            username: Sponsor username; empty values resolve to None

        Returns:
            Account or None if unknown
        """
        if not username:
            return None
        if username not in self._cache:
            self._cache[username] = await self.account_repo.get_by_username(username)
        return self._cache[username]

    async def direct_sponsor(self, account: Account) -> Account | None:
        """
        Direct sponsor of an account.

        Self-sponsorship resolves to None.

        Args:
            account: Account whose sponsor is requested

        Returns:
            Sponsor account or None
        """
        if not account.sponsor_username or account.sponsor_username == account.username:
            return None
        return await self.resolve(account.sponsor_username)

    async def get_chain(self, account: Account, max_levels: int) -> list[Account]:
        """
        Ancestors of an account, direct sponsor first.

        The walk stops at a missing sponsor, an unresolvable username, the
        level cap, or a username already visited (cycle).

        Args:
            account: Starting account (not included in the result)
            max_levels: Maximum number of ancestors

        Returns:
            Up to max_levels distinct ancestors
        """
        chain: list[Account] = []
        visited = {account.username}
        current = account

        while len(chain) < max_levels:
            sponsor_username = current.sponsor_username
            if not sponsor_username:
                break

            if sponsor_username in visited:
                logger.warning(
                    "Sponsor cycle detected, stopping chain walk",
                    extra={
                        "account": account.username,
                        "cycle_at": sponsor_username,
                        "level": len(chain) + 1,
                    },
                )
                break

            sponsor = await self.resolve(sponsor_username)
            if sponsor is None:
                logger.warning(
                    "Sponsor not found, stopping chain walk",
                    extra={
                        "account": account.username,
                        "sponsor": sponsor_username,
                        "level": len(chain) + 1,
                    },
                )
                break

            chain.append(sponsor)
            visited.add(sponsor.username)
            current = sponsor

        logger.debug(
            "Sponsor chain resolved",
            extra={
                "account": account.username,
                "max_levels": max_levels,
                "chain_length": len(chain),
            },
        )
        return chain
