from passlib.context import CryptContext

from models import User, ValidationError

USERS_KEY = "users"

# Use a CryptContext that prefers pbkdf2_sha256 but can still verify bcrypt hashes.
pwd_ctx = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], default="pbkdf2_sha256", deprecated="auto")


class UserRepository:
    def __init__(self, storage):
        self.storage = storage

    def _load(self):
        return [User.from_dict(r) for r in self.storage.get_item(USERS_KEY, [])]

    def _save(self, users):
        self.storage.set_item(USERS_KEY, [u.to_dict() for u in users])

    def exists(self):
        return self.storage.get_item(USERS_KEY) is not None

    def list_users(self):
        return self._load()

    def get_user(self, id):
        for u in self._load():
            if u.id == id:
                return u
        return None

    def get_by_username(self, username):
        wanted = (username or '').strip().lower()
        for u in self._load():
            if u.username.lower() == wanted:
                return u
        return None

    def add_user(self, name, username, role, password):
        users = self._load()
        new_id = max([0] + [u.id for u in users]) + 1
        user = User(new_id, name, username, role, pwd_ctx.hash(password))
        users.append(user)
        self._save(users)
        return user

    def update_user(self, id, name, username, role, password=None):
        users = self._load()
        for u in users:
            if u.id == id:
                u.name = name
                u.username = username
                u.role = role
                if password:
                    u.password_hash = pwd_ctx.hash(password)
                self._save(users)
                return u
        raise ValidationError(f"User {id} not found")

    def delete_user(self, id):
        users = self._load()
        remaining = [u for u in users if u.id != id]
        if len(remaining) == len(users):
            raise ValidationError(f"User {id} not found")
        self._save(remaining)

    def verify_password(self, user, password):
        if not user.password_hash:
            return False
        return pwd_ctx.verify(password, user.password_hash)
