# autopostr/services/selection.py
import uuid
from typing import Dict, Iterable, List, Set, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.connections_repo import ConnectionsRepository
from autopostr.infrastructure.crypto import encrypt_token
from autopostr.services.asset_discovery import DiscoveredAccount, DiscoveredPage

logger = structlog.get_logger(__name__)


class SelectionError(ValueError):
    pass


class SelectionState:
    """
    Which discovered pages and linked accounts are selected.

    A linked account never stays selected without its owning page:
    deselecting a page drops its accounts, selecting an account selects
    its page.
    """

    def __init__(self, pages: Iterable[DiscoveredPage] = (), accounts: Iterable[DiscoveredAccount] = ()):
        self.pages: Dict[str, DiscoveredPage] = {p.id: p for p in pages}
        self.accounts: Dict[str, DiscoveredAccount] = {a.ig_user_id: a for a in accounts}
        self.selected_pages: Set[str] = set()
        self.selected_accounts: Set[str] = set()

    @classmethod
    def from_submission(cls, pages: List[DiscoveredPage], accounts: List[DiscoveredAccount]) -> "SelectionState":
        state = cls(pages, accounts)
        for page in pages:
            state.select_page(page.id)
        for account in accounts:
            state.select_account(account.ig_user_id)
        return state

    def select_page(self, page_id: str) -> None:
        if page_id not in self.pages:
            raise SelectionError(f"Unknown page: {page_id}")
        self.selected_pages.add(page_id)

    def deselect_page(self, page_id: str) -> None:
        self.selected_pages.discard(page_id)
        for ig_user_id, account in self.accounts.items():
            if account.page_id == page_id:
                self.selected_accounts.discard(ig_user_id)

    def select_account(self, ig_user_id: str) -> None:
        account = self.accounts.get(ig_user_id)
        if account is None:
            raise SelectionError(f"Unknown Instagram account: {ig_user_id}")
        if account.page_id not in self.pages:
            # the account carries enough of its page to persist it
            self.pages[account.page_id] = DiscoveredPage(
                id=account.page_id, name=account.page_name, access_token=account.page_access_token
            )
        self.selected_accounts.add(ig_user_id)
        self.selected_pages.add(account.page_id)

    def deselect_account(self, ig_user_id: str) -> None:
        self.selected_accounts.discard(ig_user_id)

    def toggle_page(self, page_id: str) -> None:
        if page_id in self.selected_pages:
            self.deselect_page(page_id)
        else:
            self.select_page(page_id)

    def toggle_account(self, ig_user_id: str) -> None:
        if ig_user_id in self.selected_accounts:
            self.deselect_account(ig_user_id)
        else:
            self.select_account(ig_user_id)

    def chosen(self) -> Tuple[List[DiscoveredPage], List[DiscoveredAccount]]:
        pages = [self.pages[pid] for pid in self.pages if pid in self.selected_pages]
        accounts = [self.accounts[ig] for ig in self.accounts if ig in self.selected_accounts]
        return pages, accounts

    def is_empty(self) -> bool:
        return not self.selected_pages and not self.selected_accounts


class SelectionGateway:
    """Persists a confirmed selection as pages and linked accounts, all rows in one transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ConnectionsRepository(session)

    async def save(self, user_id: uuid.UUID, pages: List[DiscoveredPage], accounts: List[DiscoveredAccount]) -> int:
        state = SelectionState.from_submission(pages, accounts)
        if state.is_empty():
            raise SelectionError("No selections provided")

        connection = await self.repo.latest_active_connection(user_id, "facebook")
        if connection is None:
            raise SelectionError("No active Facebook connection; connect first")

        chosen_pages, chosen_accounts = state.chosen()
        try:
            for page in chosen_pages:
                await self.repo.stage_page(
                    user_id,
                    connection.id,
                    page.id,
                    page.name,
                    encrypt_token(page.access_token),
                    tasks=page.tasks or None,
                )
            for account in chosen_accounts:
                await self.repo.stage_account(user_id, account.ig_user_id, account.username, account.page_id)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("selection_save_failed", user_id=str(user_id))
            raise

        saved = len(chosen_pages) + len(chosen_accounts)
        logger.info("selection_saved", user_id=str(user_id), pages=len(chosen_pages), ig_accounts=len(chosen_accounts))
        return saved
