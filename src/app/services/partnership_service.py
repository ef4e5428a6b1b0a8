# src/app/services/partnership_service.py
"""
Partnership manager.
Owns invite codes and the two-sided link between partner accounts.
"""
from __future__ import annotations

import logging
import random
import re
import threading
from typing import Callable, Optional

from src.app.domain.errors import (
    AlreadyPartneredError,
    InvalidInviteCodeError,
    InviteCodeExhaustedError,
    NotAMemberError,
    SelfInviteError,
    WriteFailedError,
)
from src.app.domain.models import (
    EMPTY_MEMBER_SLOT,
    PartnerProfile,
    Partnership,
    PartnershipStatus,
    User,
)
from src.app.infra.db.base import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    WriteBatch,
    doc_path,
)
from src.app.services.user_directory import UserDirectory, user_path

logger = logging.getLogger(__name__)

PARTNERSHIPS = "partnerships"
DEFAULT_MAX_CODE_ATTEMPTS = 10
_CODE_RE = re.compile(r"^\d{6}$")


def generate_invite_code() -> str:
    """Uniform 6-digit code. Not a secret: it is meant to be read out loud."""
    return str(random.randint(100000, 999999))


def partnership_path(partnership_id: str) -> str:
    return doc_path(PARTNERSHIPS, partnership_id)


def doc_to_partnership(snap: DocumentSnapshot) -> Partnership:
    users = list(snap.get("users") or [])
    users += [EMPTY_MEMBER_SLOT] * (2 - len(users))
    return Partnership(
        id=snap.id,
        users=(str(users[0] or ""), str(users[1] or "")),
        invite_code=str(snap.get("inviteCode") or ""),
        created_by=str(snap.get("createdBy") or users[0] or ""),
        status=PartnershipStatus(str(snap.get("status") or PartnershipStatus.PENDING.value)),
        created_at=snap.get("createdAt"),
    )


class PartnershipManager:
    """
    Invite, join and leave.

    Preconditions are checked against server reads, never the local cache,
    and every mutation touches the partnership and both user documents in
    one batch.
    """

    def __init__(
        self,
        store: DocumentStore,
        directory: UserDirectory,
        *,
        max_code_attempts: int = DEFAULT_MAX_CODE_ATTEMPTS,
        code_generator: Callable[[], str] = generate_invite_code,
    ):
        self._store = store
        self._directory = directory
        self.max_code_attempts = max_code_attempts
        self._generate_code = code_generator
        self._in_flight: set[tuple[str, str]] = set()
        self._in_flight_lock = threading.Lock()

    # ----- Lookups -----

    def get_partnership(self, partnership_id: str, *, from_server: bool = True) -> Optional[Partnership]:
        snap = self._store.get(partnership_path(partnership_id), from_server=from_server)
        return doc_to_partnership(snap) if snap.exists else None

    def find_pending_by_code(self, code: str) -> Optional[Partnership]:
        matches = self._store.query(
            PARTNERSHIPS,
            where=[
                FieldFilter("inviteCode", "==", code),
                FieldFilter("status", "==", PartnershipStatus.PENDING.value),
            ],
        )
        return doc_to_partnership(matches[0]) if matches else None

    def get_partner(self, partner_id: Optional[str]) -> Optional[PartnerProfile]:
        return self._directory.get_partner(partner_id)

    def _allocate_code(self) -> str:
        for attempt in range(1, self.max_code_attempts + 1):
            code = self._generate_code()
            if self.find_pending_by_code(code) is None:
                return code
            logger.info("Invite code collision, retrying: attempt=%d", attempt)
        raise InviteCodeExhaustedError(self.max_code_attempts)

    # ----- Mutations -----

    def create_invite(self, user_id: str) -> str:
        """
        Open a pending partnership with the caller in slot 0.

        Returns:
            The 6-digit invite code to share.

        Raises:
            UserNotFoundError: caller has no profile.
            AlreadyPartneredError: caller already has a pending or active partnership.
            InviteCodeExhaustedError: no free code found within the attempt cap.
            WriteFailedError: the batch was rejected.
        """
        user = self._directory.require_user(user_id, from_server=True)
        if user.partnership_id:
            raise AlreadyPartneredError(user_id, user.partnership_id)

        code = self._allocate_code()
        partnership_id = self._store.new_id()

        batch = self._store.batch()
        batch.set(
            partnership_path(partnership_id),
            {
                "users": [user_id, EMPTY_MEMBER_SLOT],
                "inviteCode": code,
                "createdBy": user_id,
                "createdAt": SERVER_TIMESTAMP,
                "status": PartnershipStatus.PENDING.value,
            },
        )
        batch.update(user_path(user_id), {"partnershipId": partnership_id})
        batch.commit()

        logger.info("Created invite: partnership=%s, creator=%s", partnership_id, user_id)
        return code

    def join_by_code(self, user_id: str, code: str) -> None:
        """
        Redeem an invite code and activate the partnership.

        Raises:
            SelfInviteError: the code belongs to the caller.
            AlreadyPartneredError: caller already has a partnership.
            InvalidInviteCodeError: no pending partnership holds the code.
            WriteFailedError: the batch was rejected.
        """
        code = (code or "").strip()
        user = self._directory.require_user(user_id, from_server=True)
        partnership = self.find_pending_by_code(code) if _CODE_RE.match(code) else None

        if partnership is not None and partnership.has_member(user_id):
            raise SelfInviteError(user_id, code)
        if user.partnership_id:
            raise AlreadyPartneredError(user_id, user.partnership_id)
        if partnership is None:
            raise InvalidInviteCodeError(code)

        creator_id = partnership.creator_id
        creator = self._directory.get_user(creator_id, from_server=True)
        if creator is None or creator.partnership_id != partnership.id:
            # Orphaned invite: its creator has moved on.
            logger.warning(
                "Invite no longer backed by its creator: partnership=%s, creator=%s",
                partnership.id,
                creator_id,
            )
            raise InvalidInviteCodeError(code)

        batch = self._store.batch()
        batch.update(
            partnership_path(partnership.id),
            {"users": [creator_id, user_id], "status": PartnershipStatus.ACTIVE.value},
        )
        batch.update(user_path(user_id), {"partnershipId": partnership.id, "partnerId": creator_id})
        batch.update(user_path(creator_id), {"partnerId": user_id})
        batch.commit()

        logger.info(
            "Joined partnership: partnership=%s, creator=%s, joiner=%s",
            partnership.id,
            creator_id,
            user_id,
        )

    def leave(self, user_id: str, partnership_id: str) -> None:
        """
        Dissolve an active partnership or cancel a pending invite.

        Both former members keep the partnership id in ``pastPartnershipIds``
        so shared recipes stay visible. A partnership that is already gone is
        treated as left. A second call for the same user while the first is
        still running returns without doing anything.

        Raises:
            NotAMemberError: caller is not in this partnership.
            WriteFailedError: the batch was rejected.
        """
        key = ("leave", user_id)
        with self._in_flight_lock:
            if key in self._in_flight:
                logger.info("Leave already in progress: user=%s", user_id)
                return
            self._in_flight.add(key)
        try:
            self._leave(user_id, partnership_id)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(key)

    def _leave(self, user_id: str, partnership_id: str) -> None:
        partnership = self.get_partnership(partnership_id, from_server=True)
        if partnership is None:
            logger.info("Partnership already gone, nothing to leave: partnership=%s, user=%s",
                        partnership_id, user_id)
            return
        if not partnership.has_member(user_id):
            raise NotAMemberError(user_id, partnership_id)

        peer_id = partnership.other_member(user_id)
        was_active = partnership.is_active and peer_id is not None

        batch = self._store.batch()
        self._unlink(batch, user_id, partnership_id, record_history=was_active)
        if peer_id is not None:
            self._unlink(batch, peer_id, partnership_id, record_history=was_active)
        batch.delete(partnership_path(partnership_id))

        try:
            batch.commit()
        except WriteFailedError:
            logger.error("Leave failed: partnership=%s, user=%s", partnership_id, user_id)
            raise

        if was_active:
            logger.info("Dissolved partnership: partnership=%s, left_by=%s, peer=%s",
                        partnership_id, user_id, peer_id)
        else:
            logger.info("Cancelled invite: partnership=%s, creator=%s", partnership_id, user_id)

    def _unlink(
        self, batch: WriteBatch, member_id: str, partnership_id: str, *, record_history: bool
    ) -> None:
        member = self._directory.get_user(member_id, from_server=True)
        if member is None:
            logger.warning("Member profile missing while leaving: user=%s", member_id)
            return

        changes: dict[str, object] = {}
        # Only clear linkage that still points at this partnership.
        if member.partnership_id == partnership_id:
            changes["partnershipId"] = None
            changes["partnerId"] = None
        if record_history:
            changes["pastPartnershipIds"] = ArrayUnion(partnership_id)
        if changes:
            batch.update(user_path(member_id), changes)


def check_linkage(user: User, peer: Optional[User], partnership: Optional[Partnership]) -> list[str]:
    """
    List violations of the linkage invariants for one user.
    An empty list means the linkage is consistent.
    """
    problems: list[str] = []
    if user.partner_id:
        if peer is None or peer.partner_id != user.id:
            problems.append(f"{user.id}: partnerId is not mirrored by {user.partner_id}")
        if partnership is None or not partnership.is_active:
            problems.append(f"{user.id}: partnerId set without an active partnership")
    if user.partnership_id:
        if partnership is None or partnership.id != user.partnership_id:
            problems.append(f"{user.id}: partnershipId points at a missing partnership")
        elif not partnership.has_member(user.id):
            problems.append(f"{user.id}: not a member of its partnership")
        elif not partnership.is_active and partnership.creator_id != user.id:
            problems.append(f"{user.id}: pending partnership not created by this user")
    return problems
