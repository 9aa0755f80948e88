import pytest

from pagesmith.services.notifications import SmtpMailer, render_email


def test_reminder_renders_locale_and_urgency():
    message = render_email(
        "deletion_reminder",
        "hr",
        urgency="critical",
        project_name="Salon Ana",
        plan_name="Basic",
        user_name="Ana",
        label="24 sata",
        days_left=1,
    )
    assert message.subject == 'Podsjetnik: web stranica "Salon Ana" briše se za 24 sata'
    assert "#dc2626" in message.html
    assert "Ana" in message.html


def test_missing_params_do_not_break_rendering():
    message = render_email("deletion_reminder", "en", project_name="Salon Ana")
    assert "Salon Ana" in message.subject
    assert "Hello," in message.html


def test_unknown_locale_falls_back_to_english():
    assert render_email("nurture_3", "de").subject == render_email("nurture_3", "en").subject


async def test_unconfigured_mailer_only_logs(monkeypatch):
    def fail(**kwargs):
        pytest.fail("SMTP must not be used without SMTP_HOST")

    monkeypatch.setattr(SmtpMailer, "_send_smtp", staticmethod(fail))
    assert await SmtpMailer().send(to_email="ana@example.com", subject="Hi", html_body="<p>Hi</p>") is False
