"""
Tidal constituent names.

Providers spell a handful of constituent names differently (CO-OPS
publishes Lambda-2 as ``LAM2``, TICON uses mixed case, older tables write
``RHO`` for ``RHO1``).  Everything entering the datum engine is first mapped
to the UTide-compatible spelling with :func:`normalize_constituent_name`.
"""
from __future__ import annotations

from collections.abc import Iterable

# Provider spellings that differ from the canonical name.  Keys are
# uppercased before lookup.
CONSTITUENT_ALIASES: dict[str, str] = {
    'LAM2': 'LDA2',
    'LAMBDA2': 'LDA2',
    'RHO': 'RHO1',
}


def normalize_constituent_name(name: str) -> str:
    """
    Map a provider constituent name to its canonical spelling.

    Parameters
    ----------
    name : str
        Constituent name as published by the provider.

    Returns
    -------
    str
        Canonical name.  Unrecognized names are returned stripped and
        uppercased.

    Examples
    --------
    >>> normalize_constituent_name(' lam2 ')
    'LDA2'
    >>> normalize_constituent_name('m2')
    'M2'
    """
    cleaned = str(name).strip().upper()
    return CONSTITUENT_ALIASES.get(cleaned, cleaned)


def split_supported(
    names: Iterable[str], supported: Iterable[str],
) -> tuple[list[str], list[str]]:
    """
    Partition constituent names by whether a predictor supports them.

    Returns
    -------
    tuple of list
        ``(supported, unsupported)`` names, both normalized and in input
        order.
    """
    known = {normalize_constituent_name(n) for n in supported}
    ok: list[str] = []
    missing: list[str] = []
    for name in names:
        canonical = normalize_constituent_name(name)
        (ok if canonical in known else missing).append(canonical)
    return ok, missing
