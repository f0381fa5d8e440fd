import string
import warnings

import numpy as np

from ._errors import IdentifierCollisionError

DF_ID_ALPHABET = np.array(list(string.ascii_uppercase + string.ascii_lowercase + string.digits))
DF_ID_LENGTH = 8


class IdMinter:
    """Mint short alphanumeric table ids.

    Each id is ``DF_ID_LENGTH`` characters drawn uniformly, with replacement,
    from ``A-Z``, ``a-z`` and ``0-9`` (62 symbols, ~2.18e14 combinations).
    The minter itself does not track what it has produced.

    Parameters
    --
    rng : numpy.random.Generator | int | None, optional
        Random source, or a seed for one. Defaults to a fresh ``default_rng()``.

    """

    def __init__(self, rng=None):
        self._rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)

    def mint(self) -> str:
        idx = self._rng.integers(0, len(DF_ID_ALPHABET), size=DF_ID_LENGTH)
        return "".join(DF_ID_ALPHABET[idx])

    def mint_unique(self, taken, max_tries: int = 16) -> str:
        """Mint an id not contained in ``taken``, re-minting on collision.

        Raises
        --
        IdentifierCollisionError
            If ``max_tries`` consecutive candidates were all taken.

        """
        for attempt in range(max_tries):
            candidate = self.mint()
            if candidate not in taken:
                if attempt:
                    warnings.warn(
                        f"df_id collision resolved after {attempt} re-mint(s)", stacklevel=2
                    )
                return candidate
        raise IdentifierCollisionError(f"No free df_id after {max_tries} attempts")


def mint_df_id(rng=None) -> str:
    """One-off id from a throwaway minter."""
    return IdMinter(rng).mint()
