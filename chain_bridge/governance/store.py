"""
Governance proposal / vote persistence (sqlite).

Contract used by the API layer:
- ids are canonicalized to upper-case before every read and write
- addresses are stored as lower-case 0x hex
- every write runs in one BEGIN IMMEDIATE ... COMMIT transaction
- sqlite failures surface as PersistenceError; nothing here exits the process

Proposals are never deleted; their result columns are written exactly once.
At most one vote per (proposal, voter), enforced by a UNIQUE index.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import closing, contextmanager
from decimal import Decimal, InvalidOperation
from typing import Iterator, List, Optional

from ..errors import Conflict, DuplicateVote, NotFound, PersistenceError, ValidationError
from ..runtime.address import canonical_address
from ..runtime.stake_tx import check_amount
from .models import Proposal, Vote, canonical_id

log = logging.getLogger(__name__)

_PROPOSAL_COLS = (
    "id, proposer, block_height, from_address, to_address, amount, reason, created_at, "
    "result, result_msg, result_block_height, result_at"
)


class ProposalStore:
    def __init__(self, db_path: str):
        self._db_path = db_path
        self._lock = threading.RLock()
        self._init()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path, timeout=30, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open governance db {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock, closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        with closing(self._connect()) as conn:
            try:
                yield conn
            except sqlite3.Error as e:
                raise PersistenceError(f"governance read failed: {e}") from e

    def _init(self) -> None:
        os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS governance_proposal (
                        id TEXT PRIMARY KEY,
                        proposer TEXT NOT NULL,
                        block_height INTEGER NOT NULL,
                        from_address TEXT NOT NULL,
                        to_address TEXT NOT NULL,
                        amount TEXT NOT NULL,
                        reason TEXT NOT NULL DEFAULT '',
                        created_at TEXT NOT NULL,
                        result TEXT NOT NULL DEFAULT '',
                        result_msg TEXT NOT NULL DEFAULT '',
                        result_block_height INTEGER NOT NULL DEFAULT 0,
                        result_at TEXT NOT NULL DEFAULT ''
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS governance_vote (
                        proposal_id TEXT NOT NULL,
                        voter TEXT NOT NULL,
                        block_height INTEGER NOT NULL,
                        answer TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE UNIQUE INDEX IF NOT EXISTS governance_vote_pid_voter "
                    "ON governance_vote(proposal_id, voter)"
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot initialise governance db: {e}") from e

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------
    @staticmethod
    def _proposal(row: sqlite3.Row) -> Proposal:
        try:
            amount = Decimal(row["amount"])
        except InvalidOperation as e:
            raise PersistenceError(f"stored amount for {row['id']} is not a decimal") from e
        return Proposal(
            id=row["id"],
            proposer=row["proposer"],
            block_height=int(row["block_height"]),
            from_address=row["from_address"],
            to_address=row["to_address"],
            amount=amount,
            reason=row["reason"],
            created_at=row["created_at"],
            result=row["result"],
            result_msg=row["result_msg"],
            result_block_height=int(row["result_block_height"]),
            result_at=row["result_at"],
        )

    @staticmethod
    def _vote(row: sqlite3.Row) -> Vote:
        return Vote(
            proposal_id=row["proposal_id"],
            voter=row["voter"],
            block_height=int(row["block_height"]),
            answer=row["answer"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------
    def save(self, proposal: Proposal) -> Proposal:
        pid = canonical_id(proposal.id)
        if not pid:
            raise ValidationError("proposal id is required")
        check_amount(proposal.amount)
        if proposal.amount < 0:
            raise ValidationError("amount must be non-negative")
        values = (
            pid,
            canonical_address(proposal.proposer, field="proposer"),
            int(proposal.block_height),
            canonical_address(proposal.from_address, field="from"),
            canonical_address(proposal.to_address, field="to"),
            format(proposal.amount, "f"),
            proposal.reason or "",
            proposal.created_at,
        )
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO governance_proposal(id, proposer, block_height, from_address, "
                    "to_address, amount, reason, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
        except sqlite3.IntegrityError as e:
            raise Conflict(f"proposal {pid} already exists") from e
        except sqlite3.Error as e:
            raise PersistenceError(f"saving proposal {pid} failed: {e}") from e
        log.info("[governance] saved proposal %s", pid)
        return self.get_by_id(pid)

    def get_by_id(self, pid: str) -> Optional[Proposal]:
        with self._reader() as conn:
            row = conn.execute(
                f"SELECT {_PROPOSAL_COLS} FROM governance_proposal WHERE id = ?",
                (canonical_id(pid),),
            ).fetchone()
        return self._proposal(row) if row else None

    def list_all(self) -> List[Proposal]:
        with self._reader() as conn:
            rows = conn.execute(
                f"SELECT {_PROPOSAL_COLS} FROM governance_proposal ORDER BY block_height, id"
            ).fetchall()
        return [self._proposal(r) for r in rows]

    def update_result(self, pid: str, result: str, msg: str, block_height: int, result_at: str) -> Proposal:
        pid = canonical_id(pid)
        if not result:
            raise ValidationError("result is required")
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    "UPDATE governance_proposal SET result = ?, result_msg = ?, "
                    "result_block_height = ?, result_at = ? WHERE id = ? AND result = ''",
                    (result, msg or "", int(block_height), result_at, pid),
                )
                if cur.rowcount == 0:
                    exists = conn.execute(
                        "SELECT 1 FROM governance_proposal WHERE id = ?", (pid,)
                    ).fetchone()
                    if exists:
                        raise Conflict(f"proposal {pid} already has a result")
                    raise NotFound(f"proposal {pid} not found")
        except sqlite3.Error as e:
            raise PersistenceError(f"updating result of {pid} failed: {e}") from e
        log.info("[governance] proposal %s resolved: %s", pid, result)
        return self.get_by_id(pid)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------
    def save_vote(self, vote: Vote) -> Vote:
        pid = canonical_id(vote.proposal_id)
        voter = canonical_address(vote.voter, field="voter")
        if not vote.answer:
            raise ValidationError("answer is required")
        try:
            with self._transaction() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM governance_proposal WHERE id = ?", (pid,)
                ).fetchone()
                if not exists:
                    raise NotFound(f"proposal {pid} not found")
                conn.execute(
                    "INSERT INTO governance_vote(proposal_id, voter, block_height, answer, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (pid, voter, int(vote.block_height), vote.answer, vote.created_at),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateVote(f"{voter} already voted on {pid}") from e
        except sqlite3.Error as e:
            raise PersistenceError(f"saving vote on {pid} failed: {e}") from e
        return Vote(pid, voter, int(vote.block_height), vote.answer, vote.created_at)

    def get_vote(self, pid: str, voter: str) -> Optional[Vote]:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT proposal_id, voter, block_height, answer, created_at FROM governance_vote "
                "WHERE proposal_id = ? AND voter = ?",
                (canonical_id(pid), canonical_address(voter, field="voter")),
            ).fetchone()
        return self._vote(row) if row else None

    def list_votes(self, pid: str) -> List[Vote]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT proposal_id, voter, block_height, answer, created_at FROM governance_vote "
                "WHERE proposal_id = ? ORDER BY block_height, voter",
                (canonical_id(pid),),
            ).fetchall()
        return [self._vote(r) for r in rows]
