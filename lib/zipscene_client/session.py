from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ClientSession:
    access_token: str | None = None
    access_token_expired: bool = False
    request_counter: int = 0
    auth_request_counter: int = 0

    def next_request_id(self) -> int:
        self.request_counter += 1
        return self.request_counter

    def next_auth_request_id(self) -> int:
        self.auth_request_counter += 1
        return self.auth_request_counter

    def expire(self) -> None:
        self.access_token = None
        self.access_token_expired = True
