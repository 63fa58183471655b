"""Caller identity resolution used to stamp record ownership."""

from __future__ import annotations

from typing import Mapping, Protocol


class IdentityProvider(Protocol):
    def resolve_caller(self, credential: str | None) -> str | None: ...


class AnonymousIdentity:
    def resolve_caller(self, credential: str | None) -> str | None:
        return None


class StaticTokenIdentity:
    """Maps configured bearer tokens to user ids; unknown tokens are anonymous."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self.tokens = dict(tokens)

    def resolve_caller(self, credential: str | None) -> str | None:
        if not credential:
            return None
        token = credential.strip()
        if token.lower().startswith("bearer "):
            token = token[len("bearer ") :].strip()
        return self.tokens.get(token)


def build_identity_provider(tokens: Mapping[str, str] | None) -> IdentityProvider:
    if not tokens:
        return AnonymousIdentity()
    return StaticTokenIdentity(tokens)
