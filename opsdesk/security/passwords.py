from pwdlib import PasswordHash


account_hasher = PasswordHash.recommended()


def hash_password(raw_password: str) -> str:
    if not raw_password:
        raise ValueError('Password is required')
    return account_hasher.hash(raw_password)


def check_password(raw_password: str, hashed_password: str) -> tuple[bool, str | None]:
    """Verify a password; the second item is a fresh hash when the stored one is outdated."""
    if not raw_password or not hashed_password:
        return False, None
    return account_hasher.verify_and_update(raw_password, hashed_password)
