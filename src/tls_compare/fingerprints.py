"""
Browser fingerprint profiles for the mimicry strategies.

A profile names either a curl_cffi impersonation target or an explicit
JA3/Akamai fingerprint pair. Either way the ClientHello (cipher and
extension order, supported groups, GREASE) and the HTTP/2 SETTINGS frame
are those of the browser being copied, not the local OpenSSL defaults.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class FingerprintProfile:
    """How a mimicry strategy shapes its handshake."""

    name: str
    impersonate: Optional[str] = None
    ja3: Optional[str] = None
    akamai: Optional[str] = None
    extra_fp: dict = field(default_factory=dict, hash=False)
    description: str = ""

    def validate(self) -> None:
        """
        Raises:
            ValueError: If the profile names no target, or both kinds of target
        """
        if bool(self.impersonate) == bool(self.ja3):
            raise ValueError(
                f"Profile '{self.name}' needs exactly one of impersonate or ja3"
            )
        if self.akamai and not self.ja3:
            raise ValueError(f"Profile '{self.name}': akamai requires ja3")

    def session_options(self) -> dict:
        """Keyword arguments for ``curl_cffi.requests.AsyncSession``."""
        self.validate()
        if self.impersonate:
            return {"impersonate": self.impersonate}

        options = {"ja3": self.ja3}
        if self.akamai:
            options["akamai"] = self.akamai
        if self.extra_fp:
            options["extra_fp"] = dict(self.extra_fp)
        return options


# Chrome 101 is the closest built-in curl_cffi target to Chrome 102
CHROME_101 = FingerprintProfile(
    name="chrome_101",
    impersonate="chrome101",
    description="Chrome 101 ClientHello and HTTP/2 settings",
)

FIREFOX_133 = FingerprintProfile(
    name="firefox_133",
    impersonate="firefox133",
    description="Firefox 133 ClientHello and HTTP/2 settings",
)

PROFILES: dict[str, FingerprintProfile] = {
    CHROME_101.name: CHROME_101,
    FIREFOX_133.name: FIREFOX_133,
}


def get_profile(name: str) -> FingerprintProfile:
    """Look up a built-in profile by name."""
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown fingerprint profile: {name}") from None
