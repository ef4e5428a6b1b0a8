from __future__ import annotations

import threading

import pytest

from src.app.domain.errors import (
    AlreadyPartneredError,
    InvalidInviteCodeError,
    InviteCodeExhaustedError,
    NotAMemberError,
    SelfInviteError,
    UserNotFoundError,
    WriteFailedError,
)
from src.app.domain.ingredients import Ingredient
from src.app.domain.models import IdentityProfile, PartnershipStatus
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.infra.db.recipe_repo import RecipeRepository
from src.app.services.partnership_service import PartnershipManager, check_linkage
from src.app.services.recipe_service import RecipeService
from src.app.services.user_directory import UserDirectory


@pytest.fixture
def xavier(sign_up):
    return sign_up("xavier", "Xavier")


@pytest.fixture
def yuna(sign_up):
    return sign_up("yuna", "Yuna Park", "yuna.png")


class TestCreateInvite:
    def test_creates_pending_partnership(self, manager, directory, xavier) -> None:
        code = manager.create_invite(xavier.id)
        assert code == "482913"

        user = directory.require_user(xavier.id, from_server=True)
        partnership = manager.get_partnership(user.partnership_id)
        assert partnership.status == PartnershipStatus.PENDING
        assert partnership.users == ("xavier", "")
        assert partnership.invite_code == "482913"
        assert partnership.created_by == "xavier"
        assert partnership.created_at is not None
        assert user.partner_id is None

    def test_second_invite_fails(self, manager, xavier) -> None:
        manager.create_invite(xavier.id)
        with pytest.raises(AlreadyPartneredError):
            manager.create_invite(xavier.id)

    def test_unknown_user(self, manager) -> None:
        with pytest.raises(UserNotFoundError):
            manager.create_invite("ghost")

    def test_retries_on_collision(self, manager, sign_up, invite_codes) -> None:
        invite_codes[:] = ["482913", "482913", "551207"]
        first = sign_up("a", "A")
        second = sign_up("b", "B")
        assert manager.create_invite(first.id) == "482913"
        assert manager.create_invite(second.id) == "551207"

    def test_gives_up_after_max_attempts(self, store, directory, xavier, sign_up) -> None:
        manager = PartnershipManager(
            store, directory, max_code_attempts=3, code_generator=lambda: "111111"
        )
        manager.create_invite(sign_up("other", "Other").id)
        with pytest.raises(InviteCodeExhaustedError) as exc:
            manager.create_invite(xavier.id)
        assert exc.value.attempts == 3
        assert directory.require_user(xavier.id, from_server=True).partnership_id is None

    def test_write_failure_leaves_user_untouched(self, manager, directory, backend, xavier) -> None:
        backend.fail_next_commit()
        with pytest.raises(WriteFailedError):
            manager.create_invite(xavier.id)
        assert directory.require_user(xavier.id, from_server=True).partnership_id is None
        assert [p for p in backend.paths() if p.startswith("partnerships/")] == []


class TestJoinByCode:
    def test_join_activates_and_links_both(self, manager, directory, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        manager.join_by_code(yuna.id, code)

        x = directory.require_user(xavier.id, from_server=True)
        y = directory.require_user(yuna.id, from_server=True)
        partnership = manager.get_partnership(x.partnership_id)

        assert partnership.status == PartnershipStatus.ACTIVE
        assert partnership.users == ("xavier", "yuna")
        assert x.partner_id == "yuna"
        assert y.partner_id == "xavier"
        assert y.partnership_id == x.partnership_id
        assert check_linkage(x, y, partnership) == []
        assert check_linkage(y, x, partnership) == []

    def test_own_code_is_self_invite(self, manager, xavier) -> None:
        code = manager.create_invite(xavier.id)
        with pytest.raises(SelfInviteError):
            manager.join_by_code(xavier.id, code)

    def test_unknown_code(self, manager, yuna) -> None:
        with pytest.raises(InvalidInviteCodeError):
            manager.join_by_code(yuna.id, "999999")

    @pytest.mark.parametrize("code", ["", "abc", "12345", "1234567"])
    def test_malformed_code(self, manager, yuna, code) -> None:
        with pytest.raises(InvalidInviteCodeError):
            manager.join_by_code(yuna.id, code)

    def test_active_partnership_not_joinable_twice(self, manager, sign_up, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        manager.join_by_code(yuna.id, code)
        third = sign_up("zoe", "Zoe")
        with pytest.raises(InvalidInviteCodeError):
            manager.join_by_code(third.id, code)

    def test_partnered_user_cannot_join(self, manager, sign_up, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        manager.create_invite(yuna.id)
        with pytest.raises(AlreadyPartneredError):
            manager.join_by_code(yuna.id, code)

    def test_code_is_trimmed(self, manager, directory, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        manager.join_by_code(yuna.id, f"  {code} ")
        assert directory.require_user(yuna.id, from_server=True).partner_id == "xavier"

    def test_orphaned_invite_is_invalid(self, manager, store, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        # Creator's profile moved on without cleaning up the invite.
        store.batch().update("users/xavier", {"partnershipId": None}).commit()
        with pytest.raises(InvalidInviteCodeError):
            manager.join_by_code(yuna.id, code)

    def test_join_failure_is_atomic(self, manager, directory, backend, xavier, yuna) -> None:
        code = manager.create_invite(xavier.id)
        backend.fail_next_commit()
        with pytest.raises(WriteFailedError):
            manager.join_by_code(yuna.id, code)
        x = directory.require_user(xavier.id, from_server=True)
        assert x.partner_id is None
        assert directory.require_user(yuna.id, from_server=True).partnership_id is None
        assert manager.get_partnership(x.partnership_id).status == PartnershipStatus.PENDING


class TestLeave:
    def test_leave_unlinks_both_and_records_history(self, manager, directory, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id

        manager.leave(yuna.id, pid)

        assert manager.get_partnership(pid) is None
        for user_id in (xavier.id, yuna.id):
            user = directory.require_user(user_id, from_server=True)
            assert user.partner_id is None
            assert user.partnership_id is None
            assert user.past_partnership_ids == [pid]
            assert check_linkage(user, None, None) == []

    def test_leave_twice_is_idempotent(self, manager, directory, backend, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id

        manager.leave(xavier.id, pid)
        commits = backend.commit_count
        manager.leave(xavier.id, pid)

        assert backend.commit_count == commits
        assert directory.require_user(yuna.id, from_server=True).past_partnership_ids == [pid]

    def test_cancel_pending_invite(self, manager, directory, xavier) -> None:
        manager.create_invite(xavier.id)
        pid = directory.require_user(xavier.id, from_server=True).partnership_id

        manager.leave(xavier.id, pid)

        user = directory.require_user(xavier.id, from_server=True)
        assert user.partnership_id is None
        assert user.past_partnership_ids == []
        assert manager.get_partnership(pid) is None
        # Free to invite again.
        assert manager.create_invite(xavier.id) == "551207"

    def test_outsider_cannot_leave(self, manager, directory, sign_up, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id
        with pytest.raises(NotAMemberError):
            manager.leave(sign_up("zoe", "Zoe").id, pid)

    def test_leave_failure_keeps_linkage(self, manager, directory, backend, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id
        backend.fail_next_commit("unavailable")
        with pytest.raises(WriteFailedError):
            manager.leave(xavier.id, pid)
        assert directory.require_user(yuna.id, from_server=True).partner_id == "xavier"
        assert manager.get_partnership(pid).is_active

    def test_leave_does_not_clear_newer_linkage(self, manager, directory, store, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id
        store.batch().update("users/yuna", {"partnershipId": "other", "partnerId": "zoe"}).commit()

        manager.leave(xavier.id, pid)

        y = directory.require_user(yuna.id, from_server=True)
        assert y.partnership_id == "other"
        assert y.partner_id == "zoe"
        assert pid in y.past_partnership_ids

    def test_concurrent_duplicate_leave_is_ignored(self, store, directory, xavier, yuna) -> None:
        entered = threading.Event()
        release = threading.Event()

        class SlowManager(PartnershipManager):
            def _leave(self, user_id, partnership_id):
                entered.set()
                release.wait(timeout=5)
                super()._leave(user_id, partnership_id)

        manager = SlowManager(store, directory, code_generator=lambda: "482913")
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        pid = directory.require_user(xavier.id, from_server=True).partnership_id

        worker = threading.Thread(target=manager.leave, args=(xavier.id, pid))
        worker.start()
        assert entered.wait(timeout=5)
        manager.leave(xavier.id, pid)
        release.set()
        worker.join(timeout=5)

        assert directory.require_user(xavier.id, from_server=True).past_partnership_ids == [pid]


class TestPartnerLookup:
    def test_partner_profile(self, manager, directory, xavier, yuna) -> None:
        manager.join_by_code(yuna.id, manager.create_invite(xavier.id))
        directory.update_nickname(yuna.id, "Yu")
        partner = manager.get_partner(directory.require_user(xavier.id, from_server=True).partner_id)
        assert partner.label == "Yu"
        assert partner.avatar_url == "yuna.png"

    def test_missing_partner_is_none(self, manager) -> None:
        assert manager.get_partner("ghost") is None
        assert manager.get_partner(None) is None


class TestLinkageCheck:
    def test_detects_one_sided_partner(self, xavier, yuna) -> None:
        x = xavier
        x.partner_id = "yuna"
        problems = check_linkage(x, yuna, None)
        assert any("not mirrored" in p for p in problems)
        assert any("without an active partnership" in p for p in problems)


class TestSharedJournalScenario:
    def test_kimchi_stew_survives_leave(self, backend, invite_codes) -> None:
        # Each partner on their own device with their own cache.
        x_store = InMemoryDocumentStore(backend)
        y_store = InMemoryDocumentStore(backend)
        x_dir, y_dir = UserDirectory(x_store), UserDirectory(y_store)
        x_mgr = PartnershipManager(x_store, x_dir, code_generator=lambda: invite_codes.pop(0))
        y_mgr = PartnershipManager(y_store, y_dir)

        x = x_dir.sync_sign_in(IdentityProfile("x", "Xavier"))
        y = y_dir.sync_sign_in(IdentityProfile("y", "Yuna"))

        code = x_mgr.create_invite(x.id)
        assert code == "482913"
        y_mgr.join_by_code(y.id, code)

        x = x_dir.require_user(x.id, from_server=True)
        y = y_dir.require_user(y.id, from_server=True)
        pid = x.partnership_id
        assert x_mgr.get_partnership(pid).is_active
        assert (x.partner_id, y.partner_id) == ("y", "x")

        x_recipes = RecipeService(RecipeRepository(x_store))
        y_recipes = RecipeService(RecipeRepository(y_store))
        stew = x_recipes.create_recipe(
            x, title="Kimchi Stew", ingredients=[Ingredient("kimchi", "2", "cups")], steps=["Simmer"]
        )
        assert stew.scope_id == pid
        assert "Kimchi Stew" in [r.title for r in y_recipes.list_recipes(y)]

        y_mgr.leave(y.id, pid)
        assert y_mgr.get_partnership(pid) is None

        x = x_dir.require_user(x.id, from_server=True)
        y = y_dir.require_user(y.id, from_server=True)
        for user in (x, y):
            assert user.partner_id is None
            assert user.partnership_id is None
        assert "Kimchi Stew" in [r.title for r in x_recipes.list_recipes(x)]
        assert "Kimchi Stew" in [r.title for r in y_recipes.list_recipes(y)]

        solo = y_recipes.create_recipe(
            y, title="Bibimbap", ingredients=[Ingredient("rice")], steps=["Assemble"]
        )
        assert solo.scope_id == "y"
        assert "Bibimbap" not in [r.title for r in x_recipes.list_recipes(x)]


class TestPreconditionsReadServer:
    """Each device keeps its own cache; preconditions must not trust it."""

    def _device(self, backend, code: str):
        store = InMemoryDocumentStore(backend)
        directory = UserDirectory(store)
        return store, directory, PartnershipManager(store, directory, code_generator=lambda: code)

    def test_create_invite_sees_invite_made_on_other_device(self, backend) -> None:
        _, dir_a, mgr_a = self._device(backend, "482913")
        store_b, dir_b, mgr_b = self._device(backend, "551207")
        dir_a.sync_sign_in(IdentityProfile("xavier", "Xavier"))

        assert dir_a.get_user("xavier").partnership_id is None
        mgr_b.create_invite("xavier")
        assert dir_a.get_user("xavier").partnership_id is None

        with pytest.raises(AlreadyPartneredError):
            mgr_a.create_invite("xavier")
        assert len([p for p in backend.paths() if p.startswith("partnerships/")]) == 1

    def test_join_sees_invite_made_on_other_device(self, backend) -> None:
        _, dir_a, mgr_a = self._device(backend, "482913")
        store_b, dir_b, mgr_b = self._device(backend, "551207")
        dir_a.sync_sign_in(IdentityProfile("xavier", "Xavier"))
        dir_a.sync_sign_in(IdentityProfile("yuna", "Yuna"))

        code = mgr_a.create_invite("xavier")
        assert dir_a.get_user("yuna").partnership_id is None
        mgr_b.create_invite("yuna")
        assert dir_a.get_user("yuna").partnership_id is None

        with pytest.raises(AlreadyPartneredError):
            mgr_a.join_by_code("yuna", code)
        assert dir_b.require_user("xavier", from_server=True).partner_id is None

    def test_join_sees_creator_leaving_on_other_device(self, backend) -> None:
        _, dir_a, mgr_a = self._device(backend, "482913")
        store_b, dir_b, mgr_b = self._device(backend, "551207")
        dir_a.sync_sign_in(IdentityProfile("xavier", "Xavier"))
        dir_a.sync_sign_in(IdentityProfile("yuna", "Yuna"))

        code = mgr_a.create_invite("xavier")
        pid = dir_a.get_user("xavier").partnership_id
        assert dir_a.get_user("xavier").partnership_id == pid
        # The creator moves on from another device and the invite is left behind.
        store_b.batch().update("users/xavier", {"partnershipId": None}).commit()
        assert dir_a.get_user("xavier").partnership_id == pid

        with pytest.raises(InvalidInviteCodeError):
            mgr_a.join_by_code("yuna", code)
