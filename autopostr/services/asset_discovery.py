# autopostr/services/asset_discovery.py
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from autopostr.infrastructure.graph_client import GraphAPIError, GraphClient

logger = structlog.get_logger(__name__)

PAGE_FIELDS = "id,name,access_token,tasks"
LINKED_ACCOUNT_FIELDS = "instagram_business_account{id,username}"


@dataclass
class DiscoveredPage:
    id: str
    name: str
    access_token: str
    tasks: List[str] = field(default_factory=list)


@dataclass
class DiscoveredAccount:
    ig_user_id: str
    username: str
    page_id: str
    page_name: str
    page_access_token: str


@dataclass
class DiscoveryResult:
    pages: List[DiscoveredPage] = field(default_factory=list)
    ig_accounts: List[DiscoveredAccount] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "pages": [asdict(p) for p in self.pages],
            "ig_accounts": [asdict(a) for a in self.ig_accounts],
        }


class AssetDiscoveryClient:
    """Lists administrable pages and probes each one for a linked Instagram business account."""

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def discover(self, user_token: str) -> DiscoveryResult:
        result = DiscoveryResult()
        for page in await self.list_pages(user_token):
            result.pages.append(page)
            # one probe per page, issued sequentially
            account = await self.probe_linked_account(page)
            if account:
                result.ig_accounts.append(account)
        logger.info("discovery_finished", pages=len(result.pages), ig_accounts=len(result.ig_accounts))
        return result

    async def list_pages(self, user_token: str) -> List[DiscoveredPage]:
        pages: List[DiscoveredPage] = []
        data = await self.graph.get("me/accounts", params={"fields": PAGE_FIELDS, "access_token": user_token})
        while True:
            for raw in data.get("data") or []:
                if not raw.get("id") or not raw.get("access_token"):
                    continue
                pages.append(
                    DiscoveredPage(
                        id=str(raw["id"]),
                        name=raw.get("name") or "",
                        access_token=raw["access_token"],
                        tasks=list(raw.get("tasks") or []),
                    )
                )
            next_url = (data.get("paging") or {}).get("next")
            if not next_url:
                break
            # the cursor url already embeds the access token
            data = await self.graph.get(next_url)
        return pages

    async def probe_linked_account(self, page: DiscoveredPage) -> Optional[DiscoveredAccount]:
        try:
            data = await self.graph.get(page.id, params={"fields": LINKED_ACCOUNT_FIELDS, "access_token": page.access_token})
        except GraphAPIError as exc:
            logger.warning("linked_account_probe_failed", page_id=page.id, status_code=exc.status_code)
            return None

        iba = data.get("instagram_business_account") or {}
        if not iba.get("id"):
            logger.debug("no_linked_account", page_id=page.id)
            return None
        return DiscoveredAccount(
            ig_user_id=str(iba["id"]),
            username=iba.get("username") or "",
            page_id=page.id,
            page_name=page.name,
            page_access_token=page.access_token,
        )
