"""
``@mention`` extraction for comment text.
"""

import re

MENTION_PATTERN = re.compile(r"@([A-Za-z0-9_]+)")


def extract_mentions(text: str, unique: bool = False) -> list[str]:
    """
    Return the names mentioned in ``text`` as ``@name`` tokens, in order.

    Matching is case-sensitive. Duplicates are kept unless ``unique`` is set,
    in which case the first occurrence wins.

    >>> extract_mentions("ping @alice and @bob_2")
    ['alice', 'bob_2']
    """
    mentions = MENTION_PATTERN.findall(text)
    if unique:
        return list(dict.fromkeys(mentions))
    return mentions
