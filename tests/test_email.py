"""Tests for invitation emails, passwords and rate limiting helpers."""

import pytest

from persona_insights.errors import RateLimited, ValidationError
from persona_insights.models.invitation import Invitation, InvitationType
from persona_insights.models.profile import Profile
from persona_insights.services.email import EmailService, render_invitation_email
from persona_insights.services.password import hash_password, validate_password, verify_password
from persona_insights.services.rate_limiter import RateLimiter
from persona_insights.settings import settings


def _invitation(invitation_type: InvitationType, message: str | None = None) -> Invitation:
    return Invitation.create(
        email="sam@example.com",
        invitation_type=invitation_type,
        invited_by_id=1,
        message=message,
    )


class TestInvitationEmail:
    def test_team_join(self):
        invitation = _invitation(InvitationType.TEAM_JOIN, message="<b>Hi</b>")
        inviter = Profile(email="morgan@example.com", display_name="Morgan")

        subject, html = render_invitation_email(invitation, inviter)

        assert subject == f"You've been invited to join Morgan's Team on {settings.app_name}"
        assert f"/invitation/{invitation.token}" in html
        assert f"/invitation/{invitation.token}?action=decline" in html
        assert "Join Team" in html
        # The personal message is escaped
        assert "&lt;b&gt;Hi&lt;/b&gt;" in html

    def test_manager_request(self):
        invitation = _invitation(InvitationType.MANAGER_REQUEST)
        inviter = Profile(email="bob@example.com", display_name="Bob")

        subject, html = render_invitation_email(invitation, inviter)

        assert subject.startswith("Bob wants you to be their manager")
        assert "Become Manager" in html
        assert "<blockquote>" not in html

    async def test_unconfigured_service_does_not_send(self):
        service = EmailService()
        service.resend_api_key = service.sendgrid_api_key = service.smtp_host = None

        assert service.is_configured is False
        assert await service.send_email("sam@example.com", "Hello", "<p>Hi</p>") is False


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")

        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed) is True
        assert verify_password("wrong horse", hashed) is False

    def test_profiles_without_password_never_match(self):
        assert verify_password("anything", None) is False

    def test_min_length(self):
        with pytest.raises(ValidationError):
            validate_password("short")
        validate_password("long enough")


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(requests_per_minute=2)

        assert limiter.is_allowed("k") is True
        assert limiter.is_allowed("k") is True
        assert limiter.is_allowed("k") is False
        assert limiter.is_allowed("other") is True
        assert limiter.remaining("k") == 0

    def test_check_raises(self):
        limiter = RateLimiter(requests_per_minute=1)
        limiter.check("k")

        with pytest.raises(RateLimited):
            limiter.check("k")

    def test_reset(self):
        limiter = RateLimiter(requests_per_minute=1)
        limiter.check("k")
        limiter.reset()

        assert limiter.remaining("k") == 1
