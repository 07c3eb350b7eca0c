import pytest

from replyflow.contacts.email_quality import get_email_quality_reason, is_direct_contact_email


@pytest.mark.parametrize(
    "email,reason",
    [
        (None, "empty"),
        ("   ", "empty"),
        ("not-an-email", "invalid_format"),
        ("maria@acme", "invalid_format"),
        ("accommodation@acme.com", "accommodation"),
        ("noreply@acme.com", "noreply"),
        ("no-reply@acme.com", "noreply"),
        ("careers@acme.com", "generic_local_part"),
        ("vagas@startup.com.br", "generic_local_part"),
        ("maria@notifications.acme.com", "generic_domain"),
        ("maria@github.com", "blocked_pattern"),
        ("maria.silva@acme.com.br", None),
    ],
)
def test_get_email_quality_reason(email, reason):
    assert get_email_quality_reason(email) == reason


def test_reason_is_case_insensitive():
    assert get_email_quality_reason("NoReply@Acme.com") == "noreply"


def test_is_direct_contact_email():
    assert is_direct_contact_email("joao@startup.io")
    assert not is_direct_contact_email("support@startup.io")
    assert not is_direct_contact_email("")
