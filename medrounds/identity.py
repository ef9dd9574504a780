from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class Identity:
    """The practitioner acting on the current request."""
    email: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the email local part with a capital first letter."""
        if self.name and self.name.strip():
            return self.name.strip()
        local = self.email.split("@")[0]
        return local[:1].upper() + local[1:]


# Returns the identity of the caller, or None for anonymous calls
IdentityProvider = Callable[[], Optional[Identity]]


def anonymous() -> Optional[Identity]:
    return None
