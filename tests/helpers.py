from beekeeper.models.user import User
from beekeeper.policy.roles import Identity, Role
from beekeeper.utils.security import create_access_token, get_password_hash

# Hashing is slow; every test user shares one password
PASSWORD = "testpassword123"
PASSWORD_HASH = get_password_hash(PASSWORD)


def make_user(username, role=Role.USER, is_active=True):
    return User(
        username=username,
        email=f"{username}@example.com",
        password_hash=PASSWORD_HASH,
        role=role,
        is_active=is_active,
    )


def auth_headers(user):
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def identity(user_id, role=Role.USER):
    return Identity(id=user_id, role=role)
