import pytest

from replyflow.outreach.exceptions import NotFoundError, UpgradeRequiredError
from replyflow.outreach.reveal import reveal_job_contact
from tests.fakes import FakeContactsDB, FakeOutreachDB, FakePlanDB


def test_first_reveal_consumes_quota_and_unlocks_contact(sample_job):
    db = FakeOutreachDB(jobs=[sample_job])
    plan_db = FakePlanDB()
    contacts_db = FakeContactsDB()

    result = reveal_job_contact(db, plan_db, contacts_db, "u1", "job-1")

    assert result == {
        "success": True,
        "revealed": True,
        "contact": {
            "email": "maria.souza@acme.com.br",
            "linkedin": "https://linkedin.com/in/mariasouza",
            "whatsapp": None,
        },
    }
    assert plan_db.increments == [("reveals", 1)]
    assert db.has_reveal("u1", "job-1")

    contact = contacts_db.contacts[0]
    assert contact["email"] == "maria.souza@acme.com.br"
    assert contact["source"] == "job_sync"
    assert contact["custom_fields"]["jobSyncUnlockSource"] == "reveal"


def test_repeat_reveal_is_free(sample_job):
    db = FakeOutreachDB(jobs=[sample_job], reveals={("u1", "job-1")})
    plan_db = FakePlanDB(usage={"reveals_used": 50})

    result = reveal_job_contact(db, plan_db, FakeContactsDB(), "u1", "job-1")

    assert result["revealed"] is True
    assert plan_db.increments == []


def test_reveal_blocked_when_quota_is_used(sample_job):
    db = FakeOutreachDB(jobs=[sample_job])
    plan_db = FakePlanDB(usage={"reveals_used": 50})

    with pytest.raises(UpgradeRequiredError) as exc_info:
        reveal_job_contact(db, plan_db, FakeContactsDB(), "u1", "job-1")

    assert exc_info.value.to_dict() == {
        "error": "upgrade_required",
        "feature": "reveals",
        "limit": 50,
        "period": "month",
    }
    assert not db.has_reveal("u1", "job-1")


def test_generic_mailbox_is_not_added_to_contacts(sample_job):
    sample_job["contact_email"] = "vagas@acme.com.br"
    contacts_db = FakeContactsDB()

    reveal_job_contact(FakeOutreachDB(jobs=[sample_job]), FakePlanDB(), contacts_db, "u1", "job-1")

    assert contacts_db.contacts == []


def test_unknown_job():
    with pytest.raises(NotFoundError):
        reveal_job_contact(FakeOutreachDB(), FakePlanDB(), FakeContactsDB(), "u1", "missing")
