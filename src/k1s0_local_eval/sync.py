"""SyncEngine: asyncio Task ベースのスナップショット同期"""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

from .adapter import DataAdapter, DataAdapterKey
from .config import LocalEvalConfig
from .exceptions import LocalEvalError
from .id_lists import IDListManager
from .metrics import config_sync_errors_total, config_sync_total
from .network import HttpSpecNetwork, SpecNetwork
from .snapshot import SpecSnapshot

logger = structlog.stdlib.get_logger(__name__)


class SyncState(StrEnum):
    """SyncEngine の状態。"""

    UNINITIALIZED = "UNINITIALIZED"
    LOADING = "LOADING"
    READY = "READY"
    REFRESHING = "REFRESHING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    STOPPED = "STOPPED"


class SyncEngine:
    """ブートストラップ・アダプターキャッシュ・ネットワークからスナップショットを供給する。

    評価器が読むのは ``snapshot`` プロパティの参照 1 つだけで、
    更新は常に新しい SpecSnapshot への参照差し替えで行う。
    """

    def __init__(
        self,
        config: LocalEvalConfig,
        network: SpecNetwork | None = None,
        adapter: DataAdapter | None = None,
    ) -> None:
        self._config = config
        if config.local_mode:
            self._network: SpecNetwork | None = None
        else:
            self._network = network if network is not None else HttpSpecNetwork(config)
        self._adapter = adapter
        self._id_lists = IDListManager(self._network, adapter)
        self._snapshot = SpecSnapshot.empty()
        self._state = SyncState.UNINITIALIZED
        self._tasks: list[asyncio.Task[None]] = []
        self._stopped = False

    @property
    def snapshot(self) -> SpecSnapshot:
        return self._snapshot

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def id_list_manager(self) -> IDListManager:
        return self._id_lists

    async def initialize(self) -> None:
        """スナップショットを読み込み、バックグラウンド同期を開始する。

        優先順位: ブートストラップ値 > アダプターキャッシュ。ブートストラップが
        無い場合は初回のネットワーク同期を待ってから戻る。
        """
        if self._state is not SyncState.UNINITIALIZED:
            return
        self._state = SyncState.LOADING
        bootstrapped = self._load_bootstrap()
        if bootstrapped:
            self._state = SyncState.READY

        if self._adapter is not None:
            try:
                await self._adapter.initialize()
            except Exception as e:
                logger.warning("Failed to initialize data adapter", error=str(e))
        if not bootstrapped:
            await self._load_rulesets_from_adapter()
        await self._load_id_lists_from_adapter()

        if self._stopped:
            return
        self._state = SyncState.READY
        if self._network is None:
            return

        if not bootstrapped:
            await self.sync_rulesets_once()
            await self.sync_id_lists_once()
        if self._stopped:
            return
        self._start_polling(run_immediately=bootstrapped)

    async def shutdown(self) -> None:
        """バックグラウンド同期を停止してアダプターを解放する。何度呼んでもよい。"""
        if self._state in (SyncState.SHUTTING_DOWN, SyncState.STOPPED):
            return
        self._stopped = True
        self._state = SyncState.SHUTTING_DOWN
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        if self._adapter is not None:
            try:
                await self._adapter.shutdown()
            except Exception as e:
                logger.warning("Failed to shut down data adapter", error=str(e))
        self._state = SyncState.STOPPED
        logger.info("Sync engine stopped")

    async def sync_rulesets_once(self) -> bool:
        """仕様を 1 回同期する。スナップショットを差し替えたら True。"""
        if self._network is None or self._stopped:
            return False
        if self._state is SyncState.READY:
            self._state = SyncState.REFRESHING
        config_sync_total.add(1, {"kind": "rulesets"})
        try:
            payload = await self._network.download_config_specs(self._snapshot.time)
            if not payload.get("has_updates", False):
                logger.debug("No ruleset updates", since_time=self._snapshot.time)
                return False
            fresh = SpecSnapshot.from_payload(payload)
        except LocalEvalError as e:
            config_sync_errors_total.add(1, {"kind": "rulesets"})
            logger.warning("Failed to sync rulesets", error=str(e))
            return False
        finally:
            if self._state is SyncState.REFRESHING:
                self._state = SyncState.READY

        if self._stopped:
            logger.debug("Discarding ruleset sync result after shutdown")
            return False
        self._snapshot = fresh.with_id_lists(self._snapshot.id_lists)
        logger.info(
            "Rulesets updated",
            time=fresh.time,
            feature_gates=len(fresh.feature_gates),
            dynamic_configs=len(fresh.dynamic_configs),
            layer_configs=len(fresh.layer_configs),
        )
        await self._persist_rulesets(payload, fresh.time)
        return True

    async def sync_id_lists_once(self) -> bool:
        """ID リストを 1 回同期する。変更があれば True。"""
        if self._network is None or self._stopped:
            return False
        config_sync_total.add(1, {"kind": "id_lists"})
        try:
            update = await self._id_lists.fetch_updates()
        except LocalEvalError as e:
            config_sync_errors_total.add(1, {"kind": "id_lists"})
            logger.warning("Failed to sync ID lists", error=str(e))
            return False
        if self._stopped:
            logger.debug("Discarding ID list sync result after shutdown")
            return False
        if not update.has_changes:
            return False
        self._id_lists.apply_updates(update)
        self._snapshot = self._snapshot.with_id_lists(self._id_lists.memberships())
        await self._id_lists.persist(update, lambda: self._stopped)
        return True

    def _load_bootstrap(self) -> bool:
        if not self._config.bootstrap_values:
            return False
        try:
            snapshot = SpecSnapshot.from_json(self._config.bootstrap_values)
        except LocalEvalError as e:
            logger.warning("Invalid bootstrap values, falling back to adapter", error=str(e))
            return False
        self._snapshot = snapshot
        logger.info("Snapshot loaded from bootstrap values", time=snapshot.time)
        return True

    async def _load_rulesets_from_adapter(self) -> None:
        if self._adapter is None:
            return
        try:
            stored = await self._adapter.get(DataAdapterKey.RULESETS)
            if not stored.result:
                return
            snapshot = SpecSnapshot.from_json(stored.result)
        except Exception as e:
            logger.warning("Failed to load rulesets from adapter", error=str(e))
            return
        if snapshot.is_empty:
            logger.debug("Adapter ruleset cache is empty")
            return
        self._snapshot = snapshot
        logger.info("Snapshot loaded from adapter", time=snapshot.time)

    async def _load_id_lists_from_adapter(self) -> None:
        try:
            loaded = await self._id_lists.load_from_adapter()
        except Exception as e:
            logger.warning("Failed to load ID lists from adapter", error=str(e))
            return
        if loaded:
            self._snapshot = self._snapshot.with_id_lists(self._id_lists.memberships())

    async def _persist_rulesets(self, payload: dict[str, Any], fetched_at: int) -> None:
        if self._adapter is None:
            return
        try:
            await self._adapter.set(
                DataAdapterKey.RULESETS,
                json.dumps(payload),
                fetched_at or int(time.time() * 1000),
            )
        except Exception as e:
            logger.warning("Failed to persist rulesets", error=str(e))

    def _start_polling(self, run_immediately: bool) -> None:
        self._tasks.append(
            asyncio.create_task(
                self._poll_loop(
                    self.sync_rulesets_once,
                    self._config.rulesets_sync_interval_seconds,
                    run_immediately,
                )
            )
        )
        self._tasks.append(
            asyncio.create_task(
                self._poll_loop(
                    self.sync_id_lists_once,
                    self._config.id_lists_sync_interval_seconds,
                    run_immediately,
                )
            )
        )

    async def _poll_loop(
        self,
        sync: Callable[[], Awaitable[bool]],
        interval: float,
        run_immediately: bool,
    ) -> None:
        """ポーリングループ。"""
        if run_immediately:
            await self._run_sync(sync)
        while not self._stopped:
            await asyncio.sleep(interval)
            await self._run_sync(sync)

    async def _run_sync(self, sync: Callable[[], Awaitable[bool]]) -> None:
        try:
            await sync()
        except Exception as e:
            logger.error("Sync polling error", error=str(e))
