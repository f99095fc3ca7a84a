import pytest
from isodoc.services.secure_links import (
    ACTION_DOWNLOAD,
    ACTION_RESET_PASSWORD,
    ACTION_VIEW,
    SecureLinkSigner,
)

NOW_MS = 1_700_000_000_000
HOUR_MS = 3600 * 1000

@pytest.fixture
def signer():
    return SecureLinkSigner("unit-test-secret")

def split(path):
    _, prefix, data, expires, signature = path.split("/")
    assert prefix == "secure"
    return data, expires, signature

def test_link_is_valid_until_it_expires(signer):
    data, expires, signature = split(signer.generate(7, 3, ACTION_VIEW, expiry_hours=1, now_ms=NOW_MS))

    link = signer.verify(data, expires, signature, now_ms=NOW_MS)

    assert link.document_id == 7
    assert link.user_id == 3
    assert link.action == ACTION_VIEW
    assert link.expires == NOW_MS + HOUR_MS
    assert signer.verify(data, expires, signature, now_ms=NOW_MS + HOUR_MS) is not None
    assert signer.verify(data, expires, signature, now_ms=NOW_MS + HOUR_MS + 1) is None

def test_tampered_expiry_is_rejected(signer):
    data, expires, signature = split(signer.generate(7, 3, ACTION_DOWNLOAD, now_ms=NOW_MS))

    assert signer.verify(data, str(int(expires) + HOUR_MS), signature, now_ms=NOW_MS) is None

def test_tampered_payload_is_rejected(signer):
    data, expires, signature = split(signer.generate(7, 3, ACTION_DOWNLOAD, now_ms=NOW_MS))
    other, _, _ = split(signer.generate(8, 3, ACTION_DOWNLOAD, now_ms=NOW_MS))

    assert signer.verify(other, expires, signature, now_ms=NOW_MS) is None

def test_links_from_another_secret_are_rejected(signer):
    data, expires, signature = split(SecureLinkSigner("other-secret").generate(7, 3, ACTION_VIEW, now_ms=NOW_MS))

    assert signer.verify(data, expires, signature, now_ms=NOW_MS) is None

def test_reset_link_has_no_document(signer):
    data, expires, signature = split(signer.generate(None, 3, ACTION_RESET_PASSWORD, expiry_hours=1, now_ms=NOW_MS))

    link = signer.verify(data, expires, signature, now_ms=NOW_MS)

    assert link.document_id is None
    assert link.action == ACTION_RESET_PASSWORD

def test_non_numeric_expiry_is_rejected(signer):
    data, _, signature = split(signer.generate(7, 3, ACTION_VIEW, now_ms=NOW_MS))

    assert signer.verify(data, "tomorrow", signature, now_ms=NOW_MS) is None

def test_unknown_action_cannot_be_generated(signer):
    with pytest.raises(ValueError):
        signer.generate(7, 3, "delete")

def test_oauth_state_round_trip_and_expiry(signer):
    state = signer.sign_state(4, 9, now_ms=NOW_MS)

    assert signer.verify_state(state, now_ms=NOW_MS) == (4, 9)
    assert signer.verify_state(state, now_ms=NOW_MS + 15 * 60 * 1000 + 1) is None

def test_tampered_oauth_state_is_rejected(signer):
    _, expires, signature = signer.sign_state(4, 9, now_ms=NOW_MS).split(".")
    other = signer.sign_state(5, 9, now_ms=NOW_MS).split(".")[0]

    assert signer.verify_state(f"{other}.{expires}.{signature}", now_ms=NOW_MS) is None
    assert signer.verify_state("4", now_ms=NOW_MS) is None
    assert signer.verify_state("", now_ms=NOW_MS) is None

def test_link_payload_is_not_an_oauth_state(signer):
    data, expires, signature = split(signer.generate(4, 9, ACTION_VIEW, now_ms=NOW_MS))

    assert signer.verify_state(f"{data}.{expires}.{signature}", now_ms=NOW_MS) is None
