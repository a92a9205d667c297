"""The player's coin purse."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional

from .tokens import Token


class EmptyInventoryError(Exception):
    """Raised when a donation is attempted while the player holds no coins."""

    def __init__(self) -> None:
        super().__init__("Player inventory is empty; nothing to donate")


class TokenNotHeldError(Exception):
    """Raised when a specific coin is requested that the player does not hold."""

    def __init__(self, token: Token) -> None:
        self.token = token
        super().__init__(f"Coin {token} is not in the player inventory")


class PlayerInventory:
    """Ordered collection of tokens held by the player.

    Tokens are kept in acquisition order. ``last_token`` points at whichever
    coin most recently entered or left the purse, for the status line.
    """

    def __init__(self, tokens: Optional[Iterable[Token]] = None):
        self._tokens: List[Token] = []
        self.last_token: Optional[Token] = None
        for token in tokens or ():
            self.add(token)
        # Restored coins should not count as "just acquired"
        self.last_token = None

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(list(self._tokens))

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __bool__(self) -> bool:
        return bool(self._tokens)

    @property
    def tokens(self) -> List[Token]:
        return list(self._tokens)

    def add(self, token: Token) -> None:
        """Put ``token`` in the purse and mark it as carried."""
        token.location = None
        self._tokens.append(token)
        self.last_token = token

    def take(self, token: Optional[Token] = None) -> Token:
        """Remove and return ``token``, or the oldest held coin when omitted.

        The caller is responsible for giving the token a new location.

        Raises:
            EmptyInventoryError: If no token is given and the purse is empty
            TokenNotHeldError: If ``token`` is not in the purse
        """
        if token is None:
            if not self._tokens:
                raise EmptyInventoryError()
            token = self._tokens[0]
        elif token not in self._tokens:
            raise TokenNotHeldError(token)

        self._tokens.remove(token)
        self.last_token = token
        return token

    def clear(self) -> None:
        self._tokens.clear()
        self.last_token = None
