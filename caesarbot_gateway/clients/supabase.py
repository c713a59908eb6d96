"""
Supabase store adapter: user stats, leaderboard and missions over PostgREST,
plus change subscriptions through the realtime client.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import aiohttp

from ..config.models import HttpConfig, SupabaseConfig
from ..envelope import Envelope, ProviderError
from ..models.core import ChangeFilter, LeaderboardEntry, Mission, UserMission, UserStats
from .base import BaseAdapter
from .realtime import RealtimeClient, SubscriptionRegistry


logger = logging.getLogger(__name__)

NO_ROWS_CODE = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"

USER_STATS_TABLE = "user_stats"
MISSIONS_TABLE = "missions"
USER_MISSIONS_TABLE = "user_missions"

LEADERBOARD_CHANNEL = "leaderboard-updates"
USER_STATS_CHANNEL = "user-stats-{address}"

MISSION_COMPLETE_PROGRESS = 100


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """Total row count from a ``Content-Range`` header such as ``0-9/42``."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class SupabaseAdapter(BaseAdapter):
    """
    Reads and writes the application tables of the Supabase store.

    Row-not-found is not an error: single-row reads return
    ``success=True`` with ``data=None``.
    """

    provider_name = "supabase"

    def __init__(
        self,
        config: SupabaseConfig,
        http_config: Optional[HttpConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        registry: Optional[SubscriptionRegistry] = None,
    ):
        self.config = config
        url = self._require(config.url, "SUPABASE_URL")
        anon_key = self._require(config.anon_key, "SUPABASE_ANON_KEY")
        super().__init__(
            f"{url.rstrip('/')}/rest/v1",
            http_config=http_config,
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {anon_key}",
                "Content-Type": "application/json",
                "Accept-Profile": config.schema,
                "Content-Profile": config.schema,
            },
            session=session,
        )
        self._registry = registry
        self._realtime: Optional[RealtimeClient] = None

    @property
    def registry(self) -> SubscriptionRegistry:
        """Subscription registry, created on first use when none was given."""
        if self._registry is None:
            self._realtime = RealtimeClient(
                self.config.url,
                self.config.anon_key,
                heartbeat_interval=self.config.heartbeat_interval,
            )
            self._registry = SubscriptionRegistry(self._realtime)
        return self._registry

    async def close(self) -> None:
        if self._realtime is not None:
            await self._registry.unsubscribe_all()
            await self._realtime.close()
        await super().close()

    async def _single(self, table: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Select exactly one row, or None when the filter matches nothing."""
        try:
            return await self._get(f"/{table}", params=params, headers={"Accept": SINGLE_OBJECT})
        except ProviderError as e:
            if isinstance(e.details, dict) and e.details.get("code") == NO_ROWS_CODE:
                return None
            raise

    async def _upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> Any:
        return await self._post(
            f"/{table}",
            params={"on_conflict": on_conflict},
            json_body=row,
            headers={
                "Prefer": "resolution=merge-duplicates,return=representation",
                "Accept": SINGLE_OBJECT,
            },
        )

    async def get_user_stats(self, address: str) -> Envelope[Optional[UserStats]]:
        """Get the stats row of a wallet, None when it has none."""
        async def _get_user_stats():
            row = await self._single(USER_STATS_TABLE, {
                "select": "*",
                "wallet_address": f"eq.{address}",
            })
            return UserStats.from_api(row) if row else None

        return await self._call("get_user_stats", _get_user_stats)

    async def upsert_user_stats(self, address: str, fields: Mapping[str, Any]) -> Envelope[UserStats]:
        """
        Insert or merge a stats row keyed by wallet address.

        Only the given fields are written; ``last_activity`` is always
        stamped with the current UTC time.
        """
        async def _upsert_user_stats():
            row = {
                **dict(fields),
                "wallet_address": address,
                "last_activity": utc_now_iso(),
            }
            body = await self._upsert(USER_STATS_TABLE, row, on_conflict="wallet_address")
            return UserStats.from_api(body or row)

        return await self._call("upsert_user_stats", _upsert_user_stats)

    async def get_leaderboard(self, limit: int = 100) -> Envelope[List[LeaderboardEntry]]:
        """Top wallets by points; rank is the 1-based position, ties unbroken."""
        async def _get_leaderboard():
            rows = await self._get(f"/{USER_STATS_TABLE}", params={
                "select": "*",
                "order": "caesar_points.desc",
                "limit": limit,
            })
            entries = []
            for index, row in enumerate(rows or []):
                stats = UserStats.from_api(row)
                entries.append(LeaderboardEntry(**vars(stats), rank=index + 1))
            return entries

        return await self._call("get_leaderboard", _get_leaderboard)

    async def get_user_rank(self, address: str) -> Envelope[Optional[int]]:
        """
        Get the leaderboard position of a wallet.

        The rank is one more than the number of wallets with strictly more
        points; None when the wallet has no stats row.
        """
        async def _get_user_rank():
            row = await self._single(USER_STATS_TABLE, {
                "select": "caesar_points",
                "wallet_address": f"eq.{address}",
            })
            if row is None:
                return None

            points = row.get("caesar_points") or 0
            _, headers = await self._request_with_headers("GET", f"/{USER_STATS_TABLE}", params={
                "select": "wallet_address",
                "caesar_points": f"gt.{points}",
                "limit": 1,
            }, headers={"Prefer": "count=exact"})

            ahead = parse_content_range(headers.get("Content-Range"))
            if ahead is None:
                raise ProviderError("Row count missing from response", details=dict(headers))
            return ahead + 1

        return await self._call("get_user_rank", _get_user_rank)

    async def get_active_missions(self) -> Envelope[List[Mission]]:
        async def _get_active_missions():
            rows = await self._get(f"/{MISSIONS_TABLE}", params={
                "select": "*",
                "is_active": "eq.true",
                "or": f"(expires_at.is.null,expires_at.gt.{utc_now_iso()})",
            })
            return [Mission.from_api(row) for row in rows or []]

        return await self._call("get_active_missions", _get_active_missions)

    async def get_user_missions(self, address: str) -> Envelope[List[UserMission]]:
        """Mission progress of a wallet, each joined with its mission row."""
        async def _get_user_missions():
            rows = await self._get(f"/{USER_MISSIONS_TABLE}", params={
                "select": "*,missions(*)",
                "wallet_address": f"eq.{address}",
            })
            return [UserMission.from_api(row) for row in rows or []]

        return await self._call("get_user_missions", _get_user_missions)

    async def update_mission_progress(self, address: str, mission_id: str, progress: float) -> Envelope[UserMission]:
        """Record progress; reaching 100 stamps ``completed_at``."""
        async def _update_progress():
            row = {
                "wallet_address": address,
                "mission_id": mission_id,
                "progress": progress,
                "completed_at": utc_now_iso() if progress >= MISSION_COMPLETE_PROGRESS else None,
            }
            body = await self._upsert(USER_MISSIONS_TABLE, row, on_conflict="wallet_address,mission_id")
            return UserMission.from_api(body or row)

        return await self._call("update_mission_progress", _update_progress)

    async def subscribe_to_leaderboard(self, callback: Callable[[Dict[str, Any]], Any]) -> Envelope[str]:
        """Receive every change to the stats table; the envelope holds the channel name."""
        async def _subscribe():
            return await self.registry.subscribe(
                LEADERBOARD_CHANNEL,
                ChangeFilter(table=USER_STATS_TABLE, schema=self.config.schema),
                callback,
            )

        return await self._call("subscribe_to_leaderboard", _subscribe)

    async def subscribe_to_user_stats(self, address: str,
                                      callback: Callable[[Dict[str, Any]], Any]) -> Envelope[str]:
        """Receive changes to one wallet's stats row."""
        async def _subscribe():
            return await self.registry.subscribe(
                USER_STATS_CHANNEL.format(address=address),
                ChangeFilter(
                    table=USER_STATS_TABLE,
                    schema=self.config.schema,
                    filter=f"wallet_address=eq.{address}",
                ),
                callback,
            )

        return await self._call("subscribe_to_user_stats", _subscribe)

    async def unsubscribe(self, name: str) -> Envelope[bool]:
        """``data`` is False when no subscription of that name was live."""
        async def _unsubscribe():
            return await self.registry.unsubscribe(name)

        return await self._call("unsubscribe", _unsubscribe)
