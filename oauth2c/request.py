"""
In-flight Request Representation

A Request records one outbound or inbound exchange of a flow step. It is
created fresh per step and never shared between flows.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx
from authlib.jose import Key
from cryptography import x509

from oauth2c.errors import ClaimTypeError


class Claims(dict):
    """
    Decoded JWT claims.

    Values are JSON-compatible (str, number, bool, None, dict, list). The
    typed accessors return ``default`` for a missing claim and raise
    ClaimTypeError when the claim holds a different type.
    """

    def _typed(self, key: str, types: Tuple[type, ...], label: str, default: Any) -> Any:
        if key not in self:
            return default
        value = self[key]
        # bool is an int subclass; never let it pass as a number
        if isinstance(value, bool) and bool not in types:
            raise ClaimTypeError(f"claim {key!r} is a bool, expected {label}")
        if not isinstance(value, types):
            raise ClaimTypeError(f"claim {key!r} is a {type(value).__name__}, expected {label}")
        return value

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._typed(key, (str,), "string", default)

    def get_number(self, key: str, default: Optional[float] = None) -> Optional[float]:
        return self._typed(key, (int, float), "number", default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self._typed(key, (int, float), "integer", default)
        if isinstance(value, float):
            if not value.is_integer():
                raise ClaimTypeError(f"claim {key!r} is not an integer: {value}")
            return int(value)
        return value

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        return self._typed(key, (bool,), "boolean", default)

    def get_list(self, key: str, default: Optional[List[Any]] = None) -> Optional[List[Any]]:
        return self._typed(key, (list,), "list", default)

    def get_map(self, key: str, default: Optional["Claims"] = None) -> Optional["Claims"]:
        value = self._typed(key, (dict,), "object", default)
        if value is None or isinstance(value, Claims):
            return value
        return Claims(value)


class Provenance(str, Enum):
    """Where a Request value was found."""
    VERIFIED = "verified"  # JARM claims, signature checked
    QUERY = "query"
    FORM = "form"


@dataclass
class Request:
    """
    One flow step's HTTP exchange.

    ``key`` is the signing key generated or resolved for this exchange.
    ``cert`` is the leaf certificate borrowed from the HTTP transport during
    mutual-TLS authentication; the Request never owns TLS material.
    """
    method: str = ""
    url: Optional[httpx.URL] = None
    headers: Dict[str, str] = field(default_factory=dict)
    form: Dict[str, str] = field(default_factory=dict)
    jarm: Claims = field(default_factory=Claims)
    key: Optional[Key] = None
    cert: Optional[x509.Certificate] = None

    @property
    def query(self) -> httpx.QueryParams:
        if self.url is None:
            return httpx.QueryParams()
        return self.url.params

    def lookup(self, key: str) -> Tuple[Optional[str], Optional[Provenance]]:
        """
        Find a value in JARM claims, then the URL query, then the form.

        Returns:
            (value, provenance), or (None, None) when the key is absent
        """
        value = self.jarm.get(key)
        if isinstance(value, str):
            return value, Provenance.VERIFIED

        value = self.query.get(key)
        if value:
            return value, Provenance.QUERY

        value = self.form.get(key)
        if value:
            return value, Provenance.FORM

        return None, None

    def get(self, key: str) -> str:
        """Flat lookup; empty string when the key is absent."""
        value, _ = self.lookup(key)
        return value or ""
