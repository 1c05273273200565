"""
Interactive console client for the Vigenere Notes API.

Keeps the token from the last register/login in memory and sends it as a
bearer token on every other call.
"""

import logging
from typing import Callable, Optional

import httpx

from .config import Settings, setup_logging

logger = logging.getLogger(__name__)

MENU = """
=== Commands ===
1) register  - create an account
2) login     - log in (get a token)
3) texts     - show all texts
4) encrypt   - encrypt a text
5) decrypt   - decrypt a text
6) add       - add a new text
7) update    - replace a text's content
8) delete    - delete a text
9) history   - show request history
0) exit      - quit"""

ALIASES = {
    "1": "register",
    "2": "login",
    "3": "texts",
    "4": "encrypt",
    "5": "decrypt",
    "6": "add",
    "7": "update",
    "8": "delete",
    "9": "history",
    "0": "exit",
}


class ConsoleClient:
    def __init__(self, http: httpx.Client, input_func: Callable[[str], str] = input):
        self.http = http
        self.input = input_func
        self.token: Optional[str] = None

    def _headers(self):
        return {"Authorization": f"Bearer {self.token}"}

    def _ask(self, prompt: str) -> str:
        return self.input(prompt).strip()

    def _ask_int(self, prompt: str) -> Optional[int]:
        raw = self._ask(prompt)
        try:
            return int(raw)
        except ValueError:
            print(f"Not a number: {raw!r}")
            return None

    def _require_token(self) -> bool:
        if not self.token:
            print("Log in or register first (no token).")
            return False
        return True

    @staticmethod
    def _report_failure(response: httpx.Response) -> None:
        print(f"Request failed with status {response.status_code}")
        print(f"Response: {response.text}")

    def register(self):
        username = self._ask("Username: ")
        password = self._ask("Password: ")
        response = self.http.post("/register", json={"username": username, "password": password})
        if response.is_success:
            self.token = response.json()["token"]
            print("Registered successfully!")
            print(f"Your token: {self.token}")
        else:
            self._report_failure(response)

    def login(self):
        username = self._ask("Username: ")
        password = self._ask("Password: ")
        response = self.http.post("/login", json={"username": username, "password": password})
        if response.is_success:
            self.token = response.json()["token"]
            print("Logged in!")
            print(f"Your token: {self.token}")
        else:
            self._report_failure(response)

    def texts(self):
        if not self._require_token():
            return
        response = self.http.get("/text", headers=self._headers())
        if not response.is_success:
            self._report_failure(response)
            return
        texts = response.json()["texts"]
        if not texts:
            print("No texts yet.")
        for item in texts:
            print(f"[{item['id']}] {item['content']}")

    def add(self):
        if not self._require_token():
            return
        content = self._ask("Text: ")
        response = self.http.post("/text", json={"content": content}, headers=self._headers())
        if response.is_success:
            print(f"Text added with id {response.json()['text_id']}")
        else:
            self._report_failure(response)

    def update(self):
        if not self._require_token():
            return
        text_id = self._ask_int("Text id: ")
        if text_id is None:
            return
        content = self._ask("New text: ")
        response = self.http.patch(f"/text/{text_id}", json={"content": content}, headers=self._headers())
        if response.is_success:
            print("Text updated.")
        else:
            self._report_failure(response)

    def delete(self):
        if not self._require_token():
            return
        text_id = self._ask_int("Text id: ")
        if text_id is None:
            return
        response = self.http.delete(f"/text/{text_id}", headers=self._headers())
        if response.is_success:
            print("Text deleted.")
        else:
            self._report_failure(response)

    def _cipher(self, path: str, field: str, label: str):
        if not self._require_token():
            return
        text_id = self._ask_int("Text id: ")
        if text_id is None:
            return
        key = self._ask("Key: ")
        response = self.http.post(path, json={"text_id": text_id, "key": key}, headers=self._headers())
        if response.is_success:
            print(f"{label}: {response.json()[field]}")
        else:
            self._report_failure(response)

    def encrypt(self):
        self._cipher("/encrypt", "encrypted_text", "Encrypted")

    def decrypt(self):
        self._cipher("/decrypt", "decrypted_text", "Decrypted")

    def history(self):
        if not self._require_token():
            return
        response = self.http.get("/requests_history", headers=self._headers())
        if not response.is_success:
            self._report_failure(response)
            return
        for entry in response.json()["history"]:
            print(f"{entry['timestamp']}  {entry['endpoint']}")

    def run(self):
        """Read commands until `exit`/`0` or end of input."""
        handlers = {
            "register": self.register,
            "login": self.login,
            "texts": self.texts,
            "encrypt": self.encrypt,
            "decrypt": self.decrypt,
            "add": self.add,
            "update": self.update,
            "delete": self.delete,
            "history": self.history,
        }
        while True:
            print(MENU)
            try:
                command = self._ask(">> ").lower()
            except EOFError:
                break
            command = ALIASES.get(command, command)
            if command == "exit":
                break
            handler = handlers.get(command)
            if handler is None:
                print("Unknown command.")
                continue
            try:
                handler()
            except EOFError:
                break
            except httpx.HTTPError as e:
                logger.debug("Request error", exc_info=True)
                print(f"Error: {e}")


def main():
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    with httpx.Client(base_url=settings.api_url, timeout=10.0) as http:
        ConsoleClient(http).run()


if __name__ == "__main__":
    main()
