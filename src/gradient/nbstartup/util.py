"""Utility functions for notebook runtime startup."""

__all__ = ["split_list", "str_bool"]


def str_bool(inp: str) -> bool:
    """Convert a string to our best guess of whether it means ``true`` or
    ``false``.
    """
    # The empty string is false.
    if not inp:
        return False

    # Is it plausibly a number?  If it is and its value is zero, it's false.
    # If it is a nonzero number, it's true.
    try:
        return float(inp) != 0
    except ValueError:
        pass

    # Does it start with "N" or "F"?  It's false.  Otherwise, it's true.
    return not inp.upper().startswith(("N", "F"))


def split_list(inp: str) -> list[str]:
    """Split a comma- or whitespace-separated string, dropping empties."""
    return [x for x in inp.replace(",", " ").split() if x]
