""" Utility methods broadly applicable across the codebase. """

from __future__ import annotations

import sys
import logging
import pdb
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)

def fullname(o:Any) -> str:
    # from https://stackoverflow.com/a/2020083/553580
    # o.__module__ + "." + o.__class__.__qualname__ is an example in
    # this context of H.L. Mencken's "neat, plausible, and wrong."
    # Python makes no guarantees as to whether the __module__ special
    # attribute is defined, so we take a more circumspect approach.
    # Alas, the module name is explicitly excluded from __qualname__
    # in Python 3.

    if isinstance(o, type):
        klass = o
    else:
        klass = o.__class__

    module = klass.__module__
    if module is None or module == str.__class__.__module__:
        return klass.__qualname__  # Avoid reporting __builtin__
    else:
        return module + '.' + klass.__qualname__

def clip(x:float, min_x:float, max_x:float) -> float:
    return min_x if x < min_x else max_x if x > max_x else x

def elipsis(string:str, max_length:int) -> str:
    string = " ".join(string.split())
    if len(string) <= max_length:
        return string
    else:
        return string[:max_length-1] + "…"

def normalize_text(text:str) -> str:
    """ lowercases, collapses whitespace and folds curly quotes so two
    strings differing only in typography compare equal """
    text = " ".join(text.lower().split())
    text = text.replace("“", '"').replace("”", '"')
    return text.replace("‘", "'").replace("’", "'")

def unique(values:Iterable[str]) -> Sequence[str]:
    """ de-duplicates values preserving first-seen order """
    seen:set[str] = set()
    out:list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out

class PDBManager:
    def __init__(self) -> None:
        self.logger = logging.getLogger(fullname(self))

    def __enter__(self) -> PDBManager:
        self.logger.info("entering PDBManager")

        return self

    def __exit__(self, e:Any, m:Any, tb:Any) -> None:
        self.logger.info("exiting PDBManager")
        if e is not None:
            self.logger.info(f'handling exception {e} {m}')
            print(m.__repr__(), file=sys.stderr)
            pdb.post_mortem(tb)
