"""Scope-based authorization of validated access tokens.

The `scopes` claim comes in two shapes:

- a list of scope strings, granted for every audience of the token
- a mapping of web service name to a list of scope strings

Extraction is fail-closed: malformed or unexpected claim shapes yield an
empty scope set, so authorization denies by default.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import cast

from .errors import Forbidden
from .protocols import Authorizer, Claims


def _strings(raw: object) -> frozenset[str]:
    if isinstance(raw, str):
        return frozenset(raw.split())
    if isinstance(raw, (list, tuple, set, frozenset)):
        raw_seq = cast(Sequence[object], raw)
        return frozenset(item for item in raw_seq if isinstance(item, str))
    return frozenset()


@dataclass(frozen=True, slots=True)
class ScopeAccess:
    """Extracts the scopes a token grants for one web service.

    Attributes:
        scopes_claim: The claim key holding scopes. Default "scopes".

    Examples:
        >>> access = ScopeAccess()
        >>> access.scopes({"scopes": ["user-read"]}, "svc-a")
        frozenset({'user-read'})

        >>> access.scopes({"scopes": {"svc-a": ["profile-edit"]}}, "svc-a")
        frozenset({'profile-edit'})

        >>> access.scopes({"scopes": {"svc-b": ["profile-edit"]}}, "svc-a")
        frozenset()
    """

    scopes_claim: str = "scopes"

    def scopes(self, claims: Claims, audience: str) -> frozenset[str]:
        raw = claims.get(self.scopes_claim)
        if isinstance(raw, Mapping):
            return _strings(cast(Mapping[str, object], raw).get(audience))
        return _strings(raw)


class ScopeAuthorizer(Authorizer):
    """Enforces the scopes an endpoint requires.

    Empty requirements allow access. With ``require_all_scopes`` the token
    must grant every listed scope, otherwise at least one.

    Args:
        access: ScopeAccess used to read the claim. Defaults to ScopeAccess().

    Examples:
        >>> authorizer = ScopeAuthorizer()
        >>> authorizer.authorize(
        ...     {"scopes": {"svc-a": ["user-read"]}},
        ...     audience="svc-a",
        ...     scopes=frozenset({"user-read"}),
        ...     require_all_scopes=True,
        ... )  # Succeeds
    """

    def __init__(self, access: ScopeAccess | None = None) -> None:
        self._access = access or ScopeAccess()

    def authorize(
        self,
        claims: Claims,
        *,
        audience: str,
        scopes: frozenset[str],
        require_all_scopes: bool,
    ) -> None:
        """Raise Forbidden unless the token grants the required scopes.

        Raises:
            Forbidden: Required scopes are not granted for ``audience``.
        """
        if not scopes:
            return

        granted = self._access.scopes(claims, audience)
        if require_all_scopes:
            if not scopes.issubset(granted):
                raise Forbidden("Missing required scopes")
        elif not scopes.intersection(granted):
            raise Forbidden("Missing required scopes")
