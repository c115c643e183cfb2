# chain_bridge/governance/__init__.py
"""
Governance proposal / vote persistence.
"""

from chain_bridge.governance.models import Proposal, Vote, canonical_id
from chain_bridge.governance.store import ProposalStore

__all__ = ["Proposal", "Vote", "ProposalStore", "canonical_id"]
