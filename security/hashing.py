import bcrypt

def bcrypt_hash(plain: str, rounds: int = 12) -> str:
    if not isinstance(plain, str) or len(plain) == 0:
        raise ValueError("Secret must be a non-empty string")

    # bcrypt expects bytes
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")

def bcrypt_verify(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False
