"""
Tests for the REST adapter: auth header, envelope handling and error mapping.
"""

import httpx
import pytest

from campusgrid.exceptions import ApplicationError, AuthError, NetworkError, NotFoundError
from campusgrid.session import OperatorSession

from conftest import body_of, envelope, failure, make_client, run


def call(client, method, *args, **kwargs):
    async def _go():
        async with client:
            return await getattr(client, method)(*args, **kwargs)
    return run(_go())


class TestRequests:
    def test_bearer_token_and_envelope(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            return envelope([{"_id": "g1"}])

        assert call(make_client(handler), "list_groups") == [{"_id": "g1"}]
        assert seen["auth"] == "Bearer test-token"
        assert seen["url"] == "http://platform.test/api/groups"

    def test_create_sends_flat_body_and_idempotency_key(self):
        seen = {}

        def handler(request):
            seen["body"] = body_of(request)
            seen["key"] = request.headers.get("Idempotency-Key")
            return envelope({"groupName": "Lincoln Group"}, 201)

        call(make_client(handler), "create_group", {"groupName": "Lincoln Group"}, idempotency_key="k-1")
        assert seen == {"body": {"groupName": "Lincoln Group"}, "key": "k-1"}

    def test_bare_patch_response_is_returned_as_is(self):
        def handler(request):
            assert request.method == "PATCH"
            assert body_of(request) == {"status": "Active"}
            return httpx.Response(200, json={"_id": "g1", "status": "Active"})

        assert call(make_client(handler), "update_group", "g1", {"status": "Active"}) == {"_id": "g1", "status": "Active"}

    def test_no_request_without_session(self):
        calls = []

        def handler(request):
            calls.append(request)
            return envelope([])

        with pytest.raises(AuthError):
            call(make_client(handler, session=OperatorSession()), "list_groups")
        assert calls == []

    def test_login_is_sent_without_token(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return envelope({"token": "t", "admin": {"email": "ops@campusgrid.in"}})

        data = call(make_client(handler, session=OperatorSession()), "login", "ops@campusgrid.in", "pw")
        assert data["token"] == "t"


class TestErrorMapping:
    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failures(self, status_code):
        client = make_client(lambda r: failure("Token expired", status_code))
        with pytest.raises(AuthError) as exc_info:
            call(client, "list_groups")
        assert exc_info.value.status_code == status_code
        assert exc_info.value.message == "Token expired"

    def test_not_found(self):
        client = make_client(lambda r: failure("Group not found", 404))
        with pytest.raises(NotFoundError) as exc_info:
            call(client, "get_group", "missing")
        assert exc_info.value.details["id"] == "missing"

    def test_server_message_is_shown_verbatim(self):
        client = make_client(lambda r: failure("Subdomain 'lincoln' is already taken", 409))
        with pytest.raises(ApplicationError) as exc_info:
            call(client, "create_group", {})
        assert exc_info.value.message == "Subdomain 'lincoln' is already taken"
        assert exc_info.value.status_code == 409

    def test_error_without_message(self):
        client = make_client(lambda r: httpx.Response(500, text="oops"))
        with pytest.raises(ApplicationError) as exc_info:
            call(client, "list_groups")
        assert exc_info.value.message == "API request failed (500)"

    def test_success_false_in_2xx(self):
        client = make_client(lambda r: httpx.Response(200, json={"success": False, "message": "Quota exceeded"}))
        with pytest.raises(ApplicationError, match="Quota exceeded"):
            call(client, "list_groups")

    def test_non_json_success_body(self):
        client = make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ApplicationError):
            call(client, "list_groups")

    def test_list_must_be_an_array(self):
        client = make_client(lambda r: envelope({"groups": []}))
        with pytest.raises(ApplicationError):
            call(client, "list_groups")

    def test_transport_failure_is_a_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc_info:
            call(make_client(handler), "list_groups")
        assert "try again" in exc_info.value.message

    def test_timeout_is_a_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            call(make_client(handler), "get_group", "g1")

    @pytest.mark.parametrize("error", [httpx.TooManyRedirects, httpx.DecodingError])
    def test_other_request_errors_are_network_errors(self, error):
        def handler(request):
            raise error("request failed", request=request)

        with pytest.raises(NetworkError):
            call(make_client(handler), "list_groups")
