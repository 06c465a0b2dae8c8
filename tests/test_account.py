import json

import httpx

from conftest import mock_client, run

from storefront_server.account import AccountService
from storefront_server.models import RegistrationFields


def auth_handler(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        if path.endswith("/auth/signin"):
            if body["password"] == "right":
                return httpx.Response(200, json={"message": "success", "user": {"name": "Mona", "email": body["email"]}, "token": "tok-new"})
            return httpx.Response(401, json={"message": "Incorrect email or password"})
        if path.endswith("/auth/signup"):
            return httpx.Response(201, json={"message": "success", "user": {"name": body["name"], "email": body["email"]}, "token": "tok-reg"})
        if path.endswith("/auth/forgotPasswords"):
            if body["email"] == "nobody@example.com":
                return httpx.Response(404, json={"statusMsg": "fail", "message": "There is no user registered with this email address nobody@example.com"})
            return httpx.Response(200, json={"statusMsg": "success", "message": "Reset code sent to your email"})
        if path.endswith("/auth/verifyResetCode"):
            if body["resetCode"] == "123456":
                return httpx.Response(200, json={"status": "Success"})
            return httpx.Response(400, json={"message": "Reset code is invalid or has expired"})
        if path.endswith("/auth/resetPassword"):
            return httpx.Response(200, json={"token": "tok-reset"})
        return httpx.Response(404)

    return handler


def test_login_stores_session(anonymous_session):
    requests = []
    service = AccountService(mock_client(anonymous_session, auth_handler(requests)), anonymous_session)

    result = run(service.login("  mona@example.com ", "right"))

    assert result.success
    assert anonymous_session.token == "tok-new"
    assert anonymous_session.get().user_name == "Mona"
    assert json.loads(requests[0].content)["email"] == "mona@example.com"


def test_login_failure_shows_server_message(anonymous_session):
    service = AccountService(mock_client(anonymous_session, auth_handler([])), anonymous_session)

    result = run(service.login("mona@example.com", "wrong"))

    assert not result.success
    assert result.message == "Incorrect email or password"
    assert not anonymous_session.is_authenticated


def test_register_validates_before_calling(anonymous_session):
    requests = []
    service = AccountService(mock_client(anonymous_session, auth_handler(requests)), anonymous_session)
    fields = RegistrationFields(name="Mona", email="mona@example.com", password="short", re_password="short", phone="01012345678")

    result = run(service.register(fields))

    assert not result.success
    assert result.message.startswith("Password must be at least")
    assert requests == []


def test_register_signs_in(anonymous_session):
    requests = []
    service = AccountService(mock_client(anonymous_session, auth_handler(requests)), anonymous_session)
    fields = RegistrationFields(name="Mona", email="mona@example.com", password="Secret@123", re_password="Secret@123", phone="01012345678")

    result = run(service.register(fields))

    assert result.success
    assert anonymous_session.token == "tok-reg"
    assert json.loads(requests[0].content)["rePassword"] == "Secret@123"


def test_forgot_password_unknown_email(anonymous_session):
    service = AccountService(mock_client(anonymous_session, auth_handler([])), anonymous_session)

    result = run(service.request_password_reset("nobody@example.com"))

    assert not result.success
    assert result.message == "No account found with this email address."


def test_reset_password_verifies_code_first(anonymous_session):
    requests = []
    service = AccountService(mock_client(anonymous_session, auth_handler(requests)), anonymous_session)

    bad = run(service.reset_password("mona@example.com", "000000", "Secret@123"))
    assert not bad.success
    assert bad.message == "Reset code is invalid or has expired"
    assert [r.url.path for r in requests] == ["/api/v1/auth/verifyResetCode"]

    good = run(service.reset_password("mona@example.com", "123456", "Secret@123"))
    assert good.success
    assert requests[-1].method == "PUT"
    assert json.loads(requests[-1].content) == {"email": "mona@example.com", "newPassword": "Secret@123"}


def test_logout_clears_session(session):
    service = AccountService(mock_client(session, auth_handler([])), session)

    assert service.logout().success
    assert not session.is_authenticated
