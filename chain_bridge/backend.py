"""
chain_bridge.backend

Wires the core components around one consensus client and one chain
context. Built once at startup and shared by the API routers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import config as bridge_config
from .consensus.client import ConsensusClient, HTTPConsensusClient
from .consensus.context import ChainContext
from .governance.store import ProposalStore
from .runtime.broadcast import BroadcastClient
from .runtime.envelope import EnvelopeBuilder
from .runtime.nonce import SequenceResolver
from .runtime.query import StateQueryClient
from .runtime.signing import KeyManager, LocalKeystore, SigningAdapter

log = logging.getLogger(__name__)


@dataclass
class Backend:
    client: ConsensusClient
    chain: ChainContext
    resolver: SequenceResolver
    signer: SigningAdapter
    builder: EnvelopeBuilder
    broadcaster: BroadcastClient
    queries: StateQueryClient
    store: ProposalStore
    network_version: int = 15

    @classmethod
    def create(
        cls,
        client: ConsensusClient,
        keys: KeyManager,
        store: ProposalStore,
        *,
        chain: Optional[ChainContext] = None,
        aux_chain_id: int = 15,
        network_version: int = 15,
    ) -> "Backend":
        chain = chain or ChainContext()
        resolver = SequenceResolver(client)
        signer = SigningAdapter(keys, aux_chain_id=aux_chain_id)
        return cls(
            client=client,
            chain=chain,
            resolver=resolver,
            signer=signer,
            builder=EnvelopeBuilder(resolver, signer, chain),
            broadcaster=BroadcastClient(client),
            queries=StateQueryClient(client),
            store=store,
            network_version=network_version,
        )

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], keys: Optional[KeyManager] = None) -> "Backend":
        client = HTTPConsensusClient(
            bridge_config.get_rpc_url(cfg),
            timeout=bridge_config.get_rpc_timeout(cfg),
        )
        pinned = bridge_config.get_pinned_chain_id(cfg)
        return cls.create(
            client,
            keys if keys is not None else LocalKeystore(),
            ProposalStore(bridge_config.get_governance_db(cfg)),
            chain=ChainContext(pinned),
            aux_chain_id=bridge_config.get_aux_chain_id(cfg),
            network_version=bridge_config.get_network_version(cfg),
        )

    def start(self) -> bool:
        """Initialization phase: learn the chain id once. False if the engine is not up yet."""
        return self.chain.learn(self.client) is not None
