"""LocalEvalClient: SyncEngine と Evaluator の結線"""

from __future__ import annotations

from .adapter import DataAdapter
from .config import LocalEvalConfig
from .evaluator import Evaluator, IPResolver, UserAgentResolver
from .logger import new_logger
from .models import Decision, EvaluationResult, User
from .network import SpecNetwork
from .sync import SyncEngine, SyncState


class LocalEvalClient:
    """ローカル評価クライアント。

    評価呼び出しはスナップショット参照を 1 回だけ読み、I/O を待たない。
    ``Decision.DEFER_TO_REMOTE`` が返った場合はリモート評価にフォールバックすること。
    """

    def __init__(
        self,
        config: LocalEvalConfig,
        adapter: DataAdapter | None = None,
        network: SpecNetwork | None = None,
        ip_resolver: IPResolver | None = None,
        ua_resolver: UserAgentResolver | None = None,
    ) -> None:
        self._logger = new_logger(config.log)
        self._sync = SyncEngine(config, network=network, adapter=adapter)
        self._evaluator = Evaluator(
            environment=config.environment,
            ip_resolver=ip_resolver,
            ua_resolver=ua_resolver,
        )

    @property
    def state(self) -> SyncState:
        return self._sync.state

    @property
    def sync_engine(self) -> SyncEngine:
        return self._sync

    async def initialize(self) -> None:
        await self._sync.initialize()
        self._logger.info(
            "Local evaluation client initialized",
            state=str(self._sync.state),
            snapshot_time=self._sync.snapshot.time,
        )

    async def shutdown(self) -> None:
        await self._sync.shutdown()

    def check_gate(self, user: User, gate_name: str) -> EvaluationResult | Decision:
        return self._evaluator.check_gate(self._sync.snapshot, user, gate_name)

    def get_config(self, user: User, config_name: str) -> EvaluationResult | Decision:
        return self._evaluator.get_config(self._sync.snapshot, user, config_name)

    def get_layer(self, user: User, layer_name: str) -> EvaluationResult | Decision:
        return self._evaluator.get_layer(self._sync.snapshot, user, layer_name)
