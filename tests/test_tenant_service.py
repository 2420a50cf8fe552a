from app.errors import TENANT_NOT_FOUND
from app.services.tenant_service import resolve_tenant
from conftest import make_tenant


class TestResolveTenant:
    def test_resolves_by_channel_id(self, db):
        tenant = make_tenant(db, channel_id="111")
        make_tenant(db, channel_id="222")

        result = resolve_tenant(db, "111")

        assert result.ok
        assert result.value.tenant_id == tenant.tenant_id

    def test_unknown_channel(self, db):
        make_tenant(db, channel_id="111")
        result = resolve_tenant(db, "999")
        assert not result.ok
        assert result.error_code == TENANT_NOT_FOUND

    def test_inactive_config_is_ignored(self, db):
        make_tenant(db, channel_id="111", is_active=False)
        assert resolve_tenant(db, "111").error_code == TENANT_NOT_FOUND

    def test_sender_id_is_not_a_lookup_key(self, db):
        make_tenant(db, channel_id="111")
        assert not resolve_tenant(db, "33600000001").ok

    def test_missing_channel(self, db):
        assert resolve_tenant(db, None).error_code == TENANT_NOT_FOUND
