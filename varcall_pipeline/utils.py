# -*- coding: utf-8 -*-
"""Utility code"""

import typing

T = typing.TypeVar("T")


def listify(gen):
    """Decorator that converts a generator into a function which returns a list

    Use it in the case where a generator is easier to write but you want
    to enforce returning a list::

        @listify
        def counter(max_no):
            i = 0
            while i <= max_no:
                yield i
    """

    def patched(*args, **kwargs):
        """Wrapper function"""
        return list(gen(*args, **kwargs))

    return patched


def unique(items: typing.Iterable[T]) -> list[T]:
    """Return ``items`` without duplicates, keeping the first occurrence order"""
    return list(dict.fromkeys(items))
