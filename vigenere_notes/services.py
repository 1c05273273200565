import contextlib
import logging
import sqlite3
import threading
from typing import Dict, List, Optional, Tuple

from . import cipher
from .domain import AuthError, NotFoundError, RequestRecord, TextItem, User, ValidationError
from .utils import extract_bearer_token, hash_password, make_token, time_now, verify_password

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, username, password_hash, token, created_time"
_TEXT_COLUMNS = "id, user_id, content, created_time, updated_time"


class Storage:
    """
    Stores users, texts and request history in one SQLite database.

    Every operation opens its own connection; writes are serialized with a
    lock so the instance can be shared across request threads.
    """

    def __init__(self, db_path: str = "vigenere.db"):
        self.db_path = db_path
        self.lock = threading.Lock()
        self._create_tables()

    @contextlib.contextmanager
    def _get_db_connection(self):
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys=ON;")
        try:
            yield conn
        finally:
            conn.close()

    def _create_tables(self):
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                token TEXT UNIQUE,
                created_time TEXT NOT NULL
            )
            """)
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS texts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                content TEXT NOT NULL,
                created_time TEXT NOT NULL,
                updated_time TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users (id)
            )
            """)
            cursor.execute("""
            CREATE TABLE IF NOT EXISTS request_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                endpoint TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users (id)
            )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_texts_user_id ON texts(user_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_history_user_id ON request_history(user_id)")
            conn.commit()

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Run one write statement in its own transaction."""
        with self.lock:
            with self._get_db_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(sql, params)
                    conn.commit()
                    return cursor
                except sqlite3.IntegrityError:
                    conn.rollback()
                    raise
                except sqlite3.Error as e:
                    conn.rollback()
                    logger.error("Database error: %s", e)
                    raise

    def _fetch_one(self, sql: str, params: tuple) -> Optional[tuple]:
        with self._get_db_connection() as conn:
            return conn.execute(sql, params).fetchone()

    def _fetch_all(self, sql: str, params: tuple) -> List[tuple]:
        with self._get_db_connection() as conn:
            return conn.execute(sql, params).fetchall()

    # users

    def add_user(self, username: str, password_hash: str, token: str) -> User:
        created_time = time_now()
        try:
            cursor = self._write(
                "INSERT INTO users (username, password_hash, token, created_time) VALUES (?, ?, ?, ?)",
                (username, password_hash, token, created_time),
            )
        except sqlite3.IntegrityError:
            raise AuthError("User already exists")
        return User(cursor.lastrowid, username, password_hash, token, created_time)

    def get_user_by_username(self, username: str) -> Optional[User]:
        row = self._fetch_one(f"SELECT {_USER_COLUMNS} FROM users WHERE username=?", (username,))
        return User(*row) if row else None

    def get_user_by_token(self, token: str) -> Optional[User]:
        row = self._fetch_one(f"SELECT {_USER_COLUMNS} FROM users WHERE token=?", (token,))
        return User(*row) if row else None

    def set_user_token(self, user_id: int, token: Optional[str]) -> None:
        self._write("UPDATE users SET token=? WHERE id=?", (token, user_id))

    def set_password(self, user_id: int, password_hash: str, token: str) -> None:
        self._write("UPDATE users SET password_hash=?, token=? WHERE id=?", (password_hash, token, user_id))

    # texts

    def add_text(self, user_id: int, content: str) -> TextItem:
        now = time_now()
        cursor = self._write(
            "INSERT INTO texts (user_id, content, created_time, updated_time) VALUES (?, ?, ?, ?)",
            (user_id, content, now, now),
        )
        return TextItem(cursor.lastrowid, user_id, content, now, now)

    def get_text(self, user_id: int, text_id: int) -> Optional[TextItem]:
        row = self._fetch_one(
            f"SELECT {_TEXT_COLUMNS} FROM texts WHERE id=? AND user_id=?", (text_id, user_id)
        )
        return TextItem(*row) if row else None

    def list_texts(self, user_id: int) -> List[TextItem]:
        rows = self._fetch_all(f"SELECT {_TEXT_COLUMNS} FROM texts WHERE user_id=? ORDER BY id", (user_id,))
        return [TextItem(*row) for row in rows]

    def update_text(self, user_id: int, text_id: int, content: str) -> bool:
        cursor = self._write(
            "UPDATE texts SET content=?, updated_time=? WHERE id=? AND user_id=?",
            (content, time_now(), text_id, user_id),
        )
        return cursor.rowcount > 0

    def delete_text(self, user_id: int, text_id: int) -> bool:
        cursor = self._write("DELETE FROM texts WHERE id=? AND user_id=?", (text_id, user_id))
        return cursor.rowcount > 0

    # request history

    def add_request(self, user_id: int, endpoint: str) -> None:
        self._write(
            "INSERT INTO request_history (user_id, endpoint, timestamp) VALUES (?, ?, ?)",
            (user_id, endpoint, time_now()),
        )

    def list_requests(self, user_id: int) -> List[RequestRecord]:
        rows = self._fetch_all(
            "SELECT id, user_id, endpoint, timestamp FROM request_history "
            "WHERE user_id=? ORDER BY timestamp DESC, id DESC",
            (user_id,),
        )
        return [RequestRecord(*row) for row in rows]

    def clear_requests(self, user_id: int) -> int:
        cursor = self._write("DELETE FROM request_history WHERE user_id=?", (user_id,))
        return cursor.rowcount

    def counts(self) -> Dict[str, int]:
        with self._get_db_connection() as conn:
            users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            texts = conn.execute("SELECT COUNT(*) FROM texts").fetchone()[0]
        return {"users_count": users, "texts_count": texts}


class AuthService:
    """Handles user registration, login, and token validation."""

    def __init__(self, store: Storage):
        self.store = store

    def register(self, username: str, password: str) -> Tuple[int, str]:
        if not username or not username.strip() or not password or not password.strip():
            raise ValidationError("Username and password are required")
        token = make_token()
        user = self.store.add_user(username, hash_password(password), token)
        logger.info("Registered user %s (id=%s)", username, user.id)
        return user.id, token

    def login(self, username: str, password: str) -> Tuple[int, str]:
        if not username or not username.strip() or not password or not password.strip():
            raise ValidationError("Username and password are required")
        user = self.store.get_user_by_username(username)
        if user is None:
            logger.warning("Login failed: unknown user %s", username)
            raise AuthError("User not found")
        if not verify_password(password, user.password_hash):
            logger.warning("Login failed: wrong password for %s", username)
            raise AuthError("Wrong password")
        token = make_token()
        self.store.set_user_token(user.id, token)
        return user.id, token

    def validate(self, authorization: Optional[str]) -> int:
        """Resolve an Authorization header value to a user id."""
        token = extract_bearer_token(authorization)
        if token is None:
            raise AuthError("Authorization token is required")
        user = self.store.get_user_by_token(token)
        if user is None:
            raise AuthError("Invalid or expired token")
        return user.id

    def change_password(self, user_id: int, new_password: str) -> str:
        if not new_password or not new_password.strip():
            raise ValidationError("New password required")
        token = make_token()
        self.store.set_password(user_id, hash_password(new_password), token)
        return token

    def logout(self, user_id: int) -> None:
        self.store.set_user_token(user_id, None)


class PIM:
    """
    Main app logic: every call authenticates the caller, performs the
    operation on that user's data only, and appends to their history.
    """

    def __init__(self, store: Storage, auth: AuthService):
        self.store = store
        self.auth = auth

    def _record(self, user_id: int, endpoint: str) -> None:
        self.store.add_request(user_id, endpoint)

    def _require_text(self, user_id: int, text_id: int) -> TextItem:
        item = self.store.get_text(user_id, text_id)
        if item is None:
            raise NotFoundError("Text not found")
        return item

    def register(self, username: str, password: str) -> Tuple[int, str]:
        return self.auth.register(username, password)

    def login(self, username: str, password: str) -> str:
        user_id, token = self.auth.login(username, password)
        self._record(user_id, "POST /login")
        return token

    def logout(self, authorization: str) -> None:
        user_id = self.auth.validate(authorization)
        self._record(user_id, "POST /logout")
        self.auth.logout(user_id)

    def change_password(self, authorization: str, new_password: str) -> str:
        user_id = self.auth.validate(authorization)
        token = self.auth.change_password(user_id, new_password)
        self._record(user_id, "PATCH /change_password")
        return token

    def history(self, authorization: str) -> List[RequestRecord]:
        user_id = self.auth.validate(authorization)
        records = self.store.list_requests(user_id)
        self._record(user_id, "GET /requests_history")
        return records

    def clear_history(self, authorization: str) -> None:
        user_id = self.auth.validate(authorization)
        removed = self.store.clear_requests(user_id)
        logger.info("Cleared %d history records for user %s", removed, user_id)
        self._record(user_id, "DELETE /requests_history")

    def add_text(self, authorization: str, content: str) -> TextItem:
        user_id = self.auth.validate(authorization)
        if not content or not content.strip():
            raise ValidationError("Content required")
        item = self.store.add_text(user_id, content)
        self._record(user_id, "POST /text")
        return item

    def list_texts(self, authorization: str) -> List[TextItem]:
        user_id = self.auth.validate(authorization)
        items = self.store.list_texts(user_id)
        self._record(user_id, "GET /text")
        return items

    def get_text(self, authorization: str, text_id: int) -> TextItem:
        user_id = self.auth.validate(authorization)
        item = self._require_text(user_id, text_id)
        self._record(user_id, f"GET /text/{text_id}")
        return item

    def update_text(self, authorization: str, text_id: int, content: str) -> None:
        user_id = self.auth.validate(authorization)
        if not content or not content.strip():
            raise ValidationError("Content required")
        if not self.store.update_text(user_id, text_id, content):
            raise NotFoundError("Text not found")
        self._record(user_id, f"PATCH /text/{text_id}")

    def delete_text(self, authorization: str, text_id: int) -> None:
        user_id = self.auth.validate(authorization)
        if not self.store.delete_text(user_id, text_id):
            raise NotFoundError("Text not found")
        self._record(user_id, f"DELETE /text/{text_id}")

    def _apply_cipher(self, authorization: str, text_id: int, key: str, decrypting: bool) -> str:
        user_id = self.auth.validate(authorization)
        if not key or not key.strip():
            raise ValidationError("Key is required")
        item = self._require_text(user_id, text_id)
        if decrypting:
            result = cipher.decrypt(item.content, key)
            self._record(user_id, "POST /decrypt")
        else:
            result = cipher.encrypt(item.content, key)
            self._record(user_id, "POST /encrypt")
        return result

    def encrypt_text(self, authorization: str, text_id: int, key: str) -> str:
        return self._apply_cipher(authorization, text_id, key, decrypting=False)

    def decrypt_text(self, authorization: str, text_id: int, key: str) -> str:
        return self._apply_cipher(authorization, text_id, key, decrypting=True)
