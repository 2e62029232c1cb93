"""
End-to-end tests: console services against the in-memory sandbox API.
"""

import httpx
import pytest

from campusgrid.adapters.platform_client import PlatformClient
from campusgrid.exceptions import ApplicationError, AuthError, PermissionDeniedError
from campusgrid.models.enums import GroupStatus
from campusgrid.sandbox import create_app
from campusgrid.services.auth_service import AuthService
from campusgrid.services.credential_vault import CredentialVault
from campusgrid.services.group_registry import GroupRegistry
from campusgrid.services.onboarding_service import OnboardingSubmitter
from campusgrid.services.wizard import WizardState
from campusgrid.session import OperatorSession

from conftest import make_settings, run

ADMIN_EMAIL = "admin@campusgrid.in"
ADMIN_PASSWORD = "changeme"


@pytest.fixture
def app():
    return create_app(make_settings())


def connect(app) -> PlatformClient:
    return PlatformClient(
        OperatorSession(),
        settings=make_settings(),
        transport=httpx.ASGITransport(app=app),
        base_url="http://sandbox/api",
    )


async def logged_in(app, email=ADMIN_EMAIL, password=ADMIN_PASSWORD) -> PlatformClient:
    client = connect(app)
    await AuthService(client).login(email, password)
    return client


def wizard_at_review(values) -> WizardState:
    wizard = WizardState(make_settings())
    wizard.update(values)
    while not wizard.is_review:
        assert wizard.advance(), wizard.errors
    return wizard


class TestOnboardingFlow:
    def test_lincoln_group_end_to_end(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            vault = CredentialVault(client.session)
            wizard = wizard_at_review(lincoln)
            outcome = await wizard.submit(OnboardingSubmitter(client, vault, make_settings()))

            admin = vault.get()
            assert vault.get() is admin
            registry = GroupRegistry(client)
            await registry.refresh()
            await client.aclose()
            return outcome, admin, vault, registry

        outcome, admin, vault, registry = run(scenario())

        assert outcome.group.status is GroupStatus.PENDING
        assert outcome.group.subdomain == "lincoln"
        assert outcome.db_name == "campusgrid_lincoln"
        assert admin.email == "admin@lincoln.campusgrid.in"
        assert admin.name == "Lincoln Group Admin"
        assert app.state.store.verify_admin(admin.email, admin.password.get_secret_value())

        vault.clear()
        assert vault.get() is None

        groups = registry.list()
        assert len(groups) == 1
        assert groups[0].group_name == "Lincoln Group"
        assert groups[0].domain_name == "lincoln.campusgrid.in"
        assert groups[0].affiliated_boards == {"CBSE", "ICSE"}

    def test_password_is_not_stored_in_clear(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            outcome = await OnboardingSubmitter(client, settings=make_settings()).submit(
                wizard_at_review(lincoln).build_request()
            )
            listed = await client.list_groups()
            await client.aclose()
            return outcome, listed

        outcome, listed = run(scenario())
        password = outcome.admin.password.get_secret_value()
        assert password not in str(listed)
        assert password not in str(app.state.store.list_groups())

    def test_duplicate_subdomain_is_rejected(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            submitter = OnboardingSubmitter(client, settings=make_settings())
            await submitter.submit(wizard_at_review(lincoln).build_request())
            try:
                await submitter.submit(wizard_at_review(lincoln).build_request())
            finally:
                await client.aclose()

        with pytest.raises(ApplicationError) as exc_info:
            run(scenario())
        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Subdomain 'lincoln' is already taken"

    def test_repeated_key_creates_one_group(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            submitter = OnboardingSubmitter(client, settings=make_settings())
            draft = wizard_at_review(lincoln).build_request()
            first = await submitter.submit(draft, idempotency_key="same-key")
            second = await submitter.submit(draft, idempotency_key="same-key")
            await client.aclose()
            return first, second

        first, second = run(scenario())
        assert first.group.id == second.group.id
        assert len(app.state.store.list_groups()) == 1

    def test_missing_contact_email_is_never_submitted(self, app, lincoln):
        del lincoln["contactEmail"]
        wizard = WizardState(make_settings())
        wizard.update(lincoln)
        wizard.advance()
        assert wizard.advance() is False
        assert wizard.advance() is False
        assert not wizard.is_review
        assert app.state.store.list_groups() == []

    def test_server_rejects_invalid_payload(self, app, lincoln):
        del lincoln["contactEmail"]

        async def scenario():
            client = await logged_in(app)
            try:
                await client.create_group(lincoln)
            finally:
                await client.aclose()

        with pytest.raises(ApplicationError) as exc_info:
            run(scenario())
        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "Validation failed: Contact email is required"


class TestLifecycle:
    def _onboard(self, client, lincoln):
        return OnboardingSubmitter(client, settings=make_settings()).submit(
            wizard_at_review(lincoln).build_request()
        )

    def test_activate_then_refresh(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            outcome = await self._onboard(client, lincoln)
            registry = GroupRegistry(client)
            await registry.refresh()
            group_id = registry.list()[0].id
            assert group_id == outcome.group.id
            await registry.activate(group_id)
            await registry.refresh()
            again = await registry.set_status(group_id, "Active")
            await client.aclose()
            return registry, again

        registry, again = run(scenario())
        assert [g.status for g in registry.list(status="Active")] == [GroupStatus.ACTIVE]
        assert again.status is GroupStatus.ACTIVE

    def test_operator_cannot_suspend(self, app, lincoln):
        app.state.store.add_operator("ops@campusgrid.in", "ops-pass", role="operator")

        async def scenario():
            admin = await logged_in(app)
            await self._onboard(admin, lincoln)
            await admin.aclose()

            client = await logged_in(app, "ops@campusgrid.in", "ops-pass")
            registry = GroupRegistry(client)
            await registry.refresh()
            try:
                await registry.set_status(registry.list()[0].id, "Suspended")
            finally:
                await client.aclose()

        with pytest.raises(PermissionDeniedError):
            run(scenario())

    def test_server_enforces_roles(self, app, lincoln):
        app.state.store.add_operator("viewer@campusgrid.in", "view-pass", role="viewer")

        async def scenario():
            client = await logged_in(app, "viewer@campusgrid.in", "view-pass")
            try:
                await client.create_group(lincoln)
            finally:
                await client.aclose()

        with pytest.raises(AuthError) as exc_info:
            run(scenario())
        assert exc_info.value.status_code == 403

    def test_group_can_be_reopened(self, app, lincoln):
        async def scenario():
            client = await logged_in(app)
            outcome = await self._onboard(client, lincoln)
            registry = GroupRegistry(client)
            await registry.activate(outcome.group.id)
            group = await registry.set_status(outcome.group.id, "Pending")
            await client.aclose()
            return group

        assert run(scenario()).status is GroupStatus.PENDING

    def test_unrecognized_role_is_decided_by_the_server(self, app, lincoln):
        app.state.store.add_operator("owner@campusgrid.in", "owner-pass", role="platform_owner")

        async def scenario():
            admin = await logged_in(app)
            outcome = await self._onboard(admin, lincoln)
            await admin.aclose()

            client = await logged_in(app, "owner@campusgrid.in", "owner-pass")
            assert client.session.operator.role is None
            try:
                await GroupRegistry(client).set_status(outcome.group.id, "Active")
            finally:
                await client.aclose()

        with pytest.raises(AuthError) as exc_info:
            run(scenario())
        assert exc_info.value.status_code == 403

    def test_unknown_group(self, app):
        async def scenario():
            client = await logged_in(app)
            try:
                await GroupRegistry(client).get_by_id("does-not-exist")
            finally:
                await client.aclose()

        with pytest.raises(ApplicationError) as exc_info:
            run(scenario())
        assert exc_info.value.status_code == 404


class TestAuth:
    def test_wrong_password(self, app):
        with pytest.raises(AuthError):
            run(logged_in(app, password="wrong"))

    def test_login_me_logout(self, app):
        async def scenario():
            client = await logged_in(app)
            auth = AuthService(client)
            session = client.session
            assert session.is_active
            operator = await auth.me()
            await auth.logout()
            await client.aclose()
            return session, operator

        session, operator = run(scenario())
        assert operator.email == ADMIN_EMAIL
        assert operator.role.value == "superadmin"
        assert not session.is_active

    def test_logged_out_token_is_rejected(self, app):
        async def scenario():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://sandbox/api") as http:
                login = await http.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
                headers = {"Authorization": f"Bearer {login.json()['data']['token']}"}
                await http.post("/auth/logout", headers=headers)
                return await http.get("/groups", headers=headers)

        response = run(scenario())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_missing_token(self, app):
        async def scenario():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://sandbox/api") as http:
                return await http.get("/groups")

        response = run(scenario())
        assert response.status_code == 401
        assert response.json()["message"] == "Authorization header is required"
