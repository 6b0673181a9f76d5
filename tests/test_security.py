import pytest

from tunedeck.errors import ForbiddenError, NotOwnerError
from tunedeck.guard import authorize_owner, authorize_path_identity
from tunedeck.security import check_password_hash, hash_password


def test_password_round_trip():
    stored = hash_password("hunter2", iterations=1000)

    assert stored.startswith("pbkdf2_sha256$1000$")
    assert check_password_hash("hunter2", stored)
    assert not check_password_hash("hunter3", stored)


def test_hashes_are_salted():
    assert hash_password("hunter2", iterations=1000) != hash_password("hunter2", iterations=1000)


@pytest.mark.parametrize(
    "stored",
    ["", "hunter2", "md5$1$00$00", "pbkdf2_sha256$many$00$00", "pbkdf2_sha256$1000$zz$00"],
)
def test_malformed_hash_never_matches(stored):
    assert not check_password_hash("hunter2", stored)


def test_owner_is_allowed():
    authorize_owner("user-1", "user-1")


def test_non_owner_is_rejected():
    with pytest.raises(NotOwnerError):
        authorize_owner("user-2", "user-1")


def test_path_identity_mismatch_is_forbidden():
    authorize_path_identity("user-1", "user-1")
    with pytest.raises(ForbiddenError):
        authorize_path_identity("user-1", "user-2")
