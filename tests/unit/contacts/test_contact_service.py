import pytest

from replyflow.contacts.service import (
    ContactError,
    ContactNotFoundError,
    contacts_to_csv,
    create_contact,
    delete_contact,
    list_contacts,
    serialize_contact,
    update_contact,
)
from tests.fakes import FakeContactsDB, FakePlanDB


def test_serialize_masks_locked_job_sync_contact_for_free():
    row = {"id": "ct-1", "email": "maria.souza@acme.com.br", "source": "job_sync", "custom_fields": {}}

    assert serialize_contact(row, "free")["email"] == "m***@a***.com.br"
    assert serialize_contact(row, "pro")["email"] == "maria.souza@acme.com.br"


def test_list_contacts_all_means_no_filter():
    db = FakeContactsDB()
    db.insert_contact({"id": "ct-1", "user_id": "u1", "email": "a@b.io", "status": "lead"})
    db.insert_contact({"id": "ct-2", "user_id": "u1", "email": "c@d.io", "status": "replied"})
    db.insert_contact({"id": "ct-3", "user_id": "u2", "email": "e@f.io", "status": "lead"})

    assert len(list_contacts(db, FakePlanDB(), "u1", "all")) == 2
    assert [c["id"] for c in list_contacts(db, FakePlanDB(), "u1", "lead")] == ["ct-1"]


def test_csv_quotes_values_and_leaves_blanks_empty():
    csv_text = contacts_to_csv([{"email": "a@b.io", "name": 'Ana "Dev" Lima', "status": "lead"}])

    assert csv_text == (
        "email,name,company,position,status,source,source_ref,updated_at\n"
        '"a@b.io","Ana ""Dev"" Lima",,,"lead",,,'
    )


def test_create_contact_returns_existing():
    db = FakeContactsDB()
    first = create_contact(db, "u1", {"email": " Ana@Example.com "})

    second = create_contact(db, "u1", {"email": "ana@example.com"})

    assert first["created"] is True
    assert second == {"success": True, "id": first["id"], "created": False}
    assert db.contacts[0]["status"] == "lead"


def test_create_contact_rejects_bad_email():
    with pytest.raises(ContactError, match="Valid email required"):
        create_contact(FakeContactsDB(), "u1", {"email": "ana@"})


def test_update_keeps_fields_that_are_none():
    db = FakeContactsDB()
    db.insert_contact({"id": "ct-1", "user_id": "u1", "email": "a@b.io", "name": "Ana"})

    update_contact(db, "u1", "ct-1", {"name": None, "notes": "Met at meetup", "email": "x@y.io"})

    assert db.updates == [("ct-1", {"notes": "Met at meetup"})]


def test_update_other_users_contact_is_not_found():
    db = FakeContactsDB()
    db.insert_contact({"id": "ct-1", "user_id": "u2", "email": "a@b.io"})

    with pytest.raises(ContactNotFoundError):
        update_contact(db, "u1", "ct-1", {"status": "replied"})


def test_delete_contact_only_touches_own_rows():
    db = FakeContactsDB()
    db.insert_contact({"id": "ct-1", "user_id": "u2", "email": "a@b.io"})

    assert delete_contact(db, "u1", "ct-1") == {"success": True}
    assert len(db.contacts) == 1
