"""
_utils.py
=========
General-purpose text helpers for sprtrace.

These are standalone functions that don't depend on the main classes.
"""

from typing import List, Optional, Tuple


def format_newick(newick: str) -> str:
    """
    Format a NEWICK string for consistent representation.

    Ensures the NEWICK string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Parameters
    ----------
    newick : str
        NEWICK string to format.

    Returns
    -------
    str
        Formatted NEWICK string.

    Examples
    --------
    >>> format_newick('((A:1,B:1):1,(C:1,D:1):1)')
    '((A:1,B:1):1,(C:1,D:1):1);'

    >>> format_newick('  (A,B,(C,D));  ')
    '(A,B,(C,D));'
    """
    newick = newick.strip()
    if not newick.endswith(";"):
        newick += ";"
    return newick


def split_tokens(line: str, maxsplit: int = -1) -> List[str]:
    """
    Whitespace-delimited tokens of *line*, as ``str.split`` would give.

    Examples
    --------
    >>> split_tokens('@insertion 0.5 (A B)', 2)
    ['@insertion', '0.5', '(A B)']
    >>> split_tokens('   ')
    []
    """
    return line.split(None, maxsplit)


def parenthesised_span(line: str) -> Optional[Tuple[int, int]]:
    """
    Return ``(start, stop)`` so that ``line[start:stop]`` is the text strictly
    between the first ``(`` and the first ``)`` of *line*.

    Returns None when either parenthesis is missing or the first ``)`` comes
    before the first ``(``.

    Examples
    --------
    >>> parenthesised_span('@subtree (C D)')
    (10, 13)
    >>> parenthesised_span('@subtree C D') is None
    True
    """
    first = line.find("(")
    last = line.find(")")
    if first < 0 or last < 0 or last < first:
        return None
    return first + 1, last


def name_list(text: str) -> Tuple[str, ...]:
    """
    Sorted tuple of the whitespace-separated names in *text*.

    Examples
    --------
    >>> name_list(' D  C ')
    ('C', 'D')
    >>> name_list('')
    ()
    """
    return tuple(sorted(text.split()))
