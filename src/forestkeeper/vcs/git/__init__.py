"""Git implementation of the checkout abstraction."""

from forestkeeper.vcs.git.checkout import GitCheckout, parse_ref

__all__ = [
    "GitCheckout",
    "parse_ref",
]
