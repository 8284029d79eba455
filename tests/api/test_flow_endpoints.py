"""
Integration tests for flow API endpoints.

Drives complete flows over HTTP against the demo gateway. Countdowns run
on the manual scheduler from conftest.
"""

import pytest
from unittest.mock import patch

BASE = "/api/v1/flows"


@pytest.fixture
def client(api_client, services):
    """API client with the services singleton replaced."""
    with patch("api.deps.get_services", return_value=services):
        yield api_client


def create_flow(client, step=None):
    response = client.post(BASE, json={"step": step} if step else {})
    assert response.status_code == 201
    return response.json()["flow_id"]


def set_fields(client, flow_id, **values):
    for name, value in values.items():
        response = client.post(f"{BASE}/{flow_id}/fields", json={"field": name, "value": value})
        assert response.json()["success"] is True


class TestFlowLifecycle:
    """Tests for creating, reading and discarding flows."""

    @pytest.mark.api
    def test_create_flow(self, client):
        """Test a new flow starts on sign-in."""
        response = client.post(BASE, json={})

        assert response.status_code == 201
        data = response.json()
        assert data["flow_id"].startswith("flow_")
        assert data["view"]["step"] == "login"

    @pytest.mark.api
    def test_create_flow_unknown_step(self, client):
        """Test unknown steps start on sign-in."""
        flow_id = create_flow(client, step="whatever")

        response = client.get(f"{BASE}/{flow_id}")

        assert response.json()["view"]["step"] == "login"

    @pytest.mark.api
    def test_unknown_flow_404(self, client):
        """Test unknown ids return 404."""
        response = client.get(f"{BASE}/flow_nope")

        assert response.status_code == 404
        assert response.json()["detail"] == "Flow not found or expired"

    @pytest.mark.api
    def test_discard_flow(self, client):
        """Test a discarded flow is gone."""
        flow_id = create_flow(client)

        assert client.delete(f"{BASE}/{flow_id}").status_code == 204
        assert client.get(f"{BASE}/{flow_id}").status_code == 404


class TestSignInEndpoints:
    """Tests for sign-in over HTTP."""

    @pytest.mark.api
    def test_validation_errors(self, client):
        """Test invalid input returns inline errors with a 200."""
        flow_id = create_flow(client)
        set_fields(client, flow_id, contact="abc", password="123")

        response = client.post(f"{BASE}/{flow_id}/submit")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "validation"
        assert set(data["field_errors"]) == {"contact", "password"}
        assert data["view"]["field_errors"] == data["field_errors"]

    @pytest.mark.api
    def test_sign_in(self, client, test_config):
        """Test a valid sign-in reports the signed-in identifier."""
        flow_id = create_flow(client)
        set_fields(client, flow_id, contact=test_config["test_email"], password=test_config["test_password"])

        data = client.post(f"{BASE}/{flow_id}/submit").json()

        assert data["success"] is True
        assert data["view"]["signed_in_as"] == "us***@example.com"

    @pytest.mark.api
    def test_password_is_masked(self, client):
        """Test hidden passwords are never echoed back."""
        flow_id = create_flow(client)
        set_fields(client, flow_id, password="secret1")

        view = client.get(f"{BASE}/{flow_id}").json()["view"]
        assert view["fields"]["password"] == "*******"

        client.post(f"{BASE}/{flow_id}/visibility", json={"field": "password"})
        view = client.get(f"{BASE}/{flow_id}").json()["view"]
        assert view["fields"]["password"] == "secret1"

    @pytest.mark.api
    def test_illegal_field(self, client):
        """Test editing a field the step does not have."""
        flow_id = create_flow(client)

        data = client.post(f"{BASE}/{flow_id}/fields", json={"field": "name", "value": "Ann"}).json()

        assert data["success"] is False
        assert data["kind"] == "illegal_transition"


class TestFieldTypes:
    """Tests for field values of the wrong type."""

    @pytest.mark.api
    def test_terms_string_not_accepted(self, client):
        """Test a "false" string never counts as accepting the terms."""
        flow_id = create_flow(client, step="signup")

        response = client.post(f"{BASE}/{flow_id}/fields", json={"field": "accept_terms", "value": "false"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "validation"
        assert data["field_errors"] == {"accept_terms": "Must be true or false"}
        assert data["view"]["fields"]["accept_terms"] is False

    @pytest.mark.api
    def test_terms_boolean_accepted(self, client):
        """Test a JSON boolean sets the terms flag."""
        flow_id = create_flow(client, step="signup")

        data = client.post(f"{BASE}/{flow_id}/fields", json={"field": "accept_terms", "value": True}).json()

        assert data["success"] is True
        assert data["view"]["fields"]["accept_terms"] is True

    @pytest.mark.api
    @pytest.mark.parametrize("name", ["password", "contact"])
    def test_boolean_in_text_field(self, client, name):
        """Test a boolean sent for a text field is refused, not stored."""
        flow_id = create_flow(client)

        response = client.post(f"{BASE}/{flow_id}/fields", json={"field": name, "value": True})

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "validation"
        assert data["field_errors"] == {name: "Must be text"}
        assert data["view"]["fields"][name] == ""

        submitted = client.post(f"{BASE}/{flow_id}/submit")
        assert submitted.status_code == 200


class TestSignUpEndpoints:
    """Tests for sign-up over HTTP."""

    @pytest.mark.api
    def test_sign_up(self, client, test_config):
        """Test creating an account."""
        flow_id = create_flow(client)
        client.post(f"{BASE}/{flow_id}/navigate", json={"step": "signup"})
        set_fields(
            client, flow_id,
            name=test_config["test_name"],
            contact=test_config["test_phone"],
            password=test_config["test_password"],
            confirm_password=test_config["test_password"],
            accept_terms=True,
        )

        view = client.get(f"{BASE}/{flow_id}").json()["view"]
        assert view["strength"] == {"score": 5, "label": "Strong"}

        data = client.post(f"{BASE}/{flow_id}/submit").json()

        assert data["success"] is True
        assert data["view"]["step"] == "login"
        assert data["view"]["notice"] == "Account created successfully"

    @pytest.mark.api
    def test_back_to_login(self, client):
        """Test back leaves sign-up."""
        flow_id = create_flow(client, step="signup")

        data = client.post(f"{BASE}/{flow_id}/back").json()

        assert data["view"]["step"] == "login"


class TestRecoveryEndpoints:
    """Tests for forgot password, code entry and reset over HTTP."""

    def request_code(self, client, contact="a@b.com"):
        flow_id = create_flow(client, step="forgot-password")
        set_fields(client, flow_id, contact=contact)
        data = client.post(f"{BASE}/{flow_id}/submit").json()
        assert data["view"]["step"] == "otp-verification"
        return flow_id

    @pytest.mark.api
    def test_request_code(self, client):
        """Test a sent code opens verification with a running countdown."""
        flow_id = self.request_code(client, "john.doe@example.com")

        otp = client.get(f"{BASE}/{flow_id}").json()["view"]["otp"]

        assert otp["masked_contact"] == "jo***@example.com"
        assert otp["remaining"] == "1:00"
        assert otp["can_resend"] is False

    @pytest.mark.api
    def test_digit_and_backspace(self, client):
        """Test typing into boxes returns focus hints."""
        flow_id = self.request_code(client)

        typed = client.post(f"{BASE}/{flow_id}/otp/digit", json={"index": 0, "value": "7"}).json()
        assert typed["focus"] == 1
        assert typed["view"]["otp"]["digits"][0] == "7"

        cleared = client.post(f"{BASE}/{flow_id}/otp/backspace", json={"index": 0}).json()
        assert cleared["view"]["otp"]["digits"][0] == ""

    @pytest.mark.api
    def test_wrong_code(self, client):
        """Test a wrong code clears the boxes and shows the error."""
        flow_id = self.request_code(client)
        client.post(f"{BASE}/{flow_id}/otp/paste", json={"text": "000000"})

        data = client.post(f"{BASE}/{flow_id}/submit").json()

        assert data["kind"] == "gateway"
        assert data["view"]["otp"]["digits"] == [""] * 6
        assert data["view"]["otp"]["error"] == "Invalid verification code. Please try again."

    @pytest.mark.api
    def test_resend_gated_by_countdown(self, client, scheduler):
        """Test resend is refused until the countdown ends."""
        flow_id = self.request_code(client)

        early = client.post(f"{BASE}/{flow_id}/otp/resend").json()
        assert early["kind"] == "illegal_transition"

        scheduler.advance(60)
        assert client.get(f"{BASE}/{flow_id}").json()["view"]["otp"]["can_resend"] is True

        later = client.post(f"{BASE}/{flow_id}/otp/resend").json()
        assert later["success"] is True
        assert later["view"]["otp"]["remaining_seconds"] == 60

    @pytest.mark.api
    def test_full_recovery(self, client, test_config):
        """Test code verification and password reset."""
        flow_id = self.request_code(client)
        client.post(f"{BASE}/{flow_id}/otp/paste", json={"text": test_config["demo_code"]})

        verified = client.post(f"{BASE}/{flow_id}/submit").json()
        assert verified["view"]["step"] == "reset-password"

        set_fields(client, flow_id, password="NewPass123", confirm_password="NewPass123")
        data = client.post(f"{BASE}/{flow_id}/submit").json()

        assert data["success"] is True
        assert data["view"]["step"] == "login"
        assert data["view"]["notice"] == "Password reset successful"

    @pytest.mark.api
    def test_back_keeps_contact(self, client):
        """Test going back from code entry keeps the contact."""
        flow_id = self.request_code(client)

        data = client.post(f"{BASE}/{flow_id}/back").json()

        assert data["view"]["step"] == "forgot-password"
        assert data["view"]["fields"]["contact"] == "a@b.com"

    @pytest.mark.api
    def test_navigate_to_reset_refused(self, client):
        """Test the reset step cannot be opened directly."""
        flow_id = create_flow(client)

        data = client.post(f"{BASE}/{flow_id}/navigate", json={"step": "reset-password"}).json()

        assert data["kind"] == "illegal_transition"
        assert data["view"]["step"] == "login"

    @pytest.mark.api
    def test_digit_index_validated(self, client):
        """Test negative indexes fail request validation."""
        flow_id = self.request_code(client)

        response = client.post(f"{BASE}/{flow_id}/otp/digit", json={"index": -1, "value": "1"})

        assert response.status_code == 422
