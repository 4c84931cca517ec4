"""Tokenizer and block reader for CIF / mmCIF text.

The lexer is a character-level state machine with five states:

    NORMAL         bare tokens separated by whitespace
    SINGLE_QUOTED  inside '...'
    DOUBLE_QUOTED  inside "..."
    TEXT_BLOCK     between two lines starting with ';'
    COMMENT        from '#' to the end of the line

A quote only opens at the start of a token and only closes when followed by
whitespace or the end of the line, so primed atom names such as C1' are
read as ordinary tokens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional


logger = logging.getLogger(__name__)


class LexState(Enum):
    NORMAL = auto()
    SINGLE_QUOTED = auto()
    DOUBLE_QUOTED = auto()
    TEXT_BLOCK = auto()
    COMMENT = auto()


class TokenKind(Enum):
    DATA = auto()    # data_<name>
    LOOP = auto()    # loop_
    TAG = auto()     # _category.item
    VALUE = auto()


_QUOTE_STATES = {"'": LexState.SINGLE_QUOTED, '"': LexState.DOUBLE_QUOTED}


@dataclass(frozen=True)
class CifToken:
    """A lexical token with the (1-based) line it starts on."""
    kind: TokenKind
    value: str
    line: int


@dataclass
class CifBlock:
    """One ``data_`` block: every tag maps to the list of its values.

    Single-valued tags hold a one-element list; looped tags hold one value
    per loop row.
    """
    name: str
    items: Dict[str, List[str]] = field(default_factory=dict)

    def __contains__(self, tag: str) -> bool:
        return tag in self.items

    def get(self, tag: str) -> Optional[List[str]]:
        return self.items.get(tag)

    def first(self, tag: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a tag, or ``default``."""
        values = self.items.get(tag)
        if not values:
            return default
        return values[0]


def normalize_tag(tag: str) -> str:
    """Lower-case a tag and turn the category separator into '_'.

    ``_atom_site.Cartn_x`` and ``_atom_site_Cartn_x`` both become
    ``_atom_site_cartn_x``.
    """
    return tag.lower().replace(".", "_", 1)


def _classify(word: str, line: int) -> CifToken:
    lowered = word.lower()
    if lowered.startswith("data_"):
        return CifToken(TokenKind.DATA, word[5:], line)
    if lowered == "loop_":
        return CifToken(TokenKind.LOOP, word, line)
    if word.startswith("_"):
        return CifToken(TokenKind.TAG, word, line)
    return CifToken(TokenKind.VALUE, word, line)


def tokenize_cif(text: str) -> Iterator[CifToken]:
    """Yield the tokens of a CIF document."""
    state = LexState.NORMAL
    text_lines: List[str] = []
    text_start = 0

    for line_no, line in enumerate(text.splitlines(), start=1):
        col = 0

        if state is LexState.TEXT_BLOCK:
            if not line.startswith(";"):
                text_lines.append(line)
                continue
            yield CifToken(TokenKind.VALUE, "\n".join(text_lines), text_start)
            text_lines = []
            state = LexState.NORMAL
            col = 1
        elif line.startswith(";"):
            state = LexState.TEXT_BLOCK
            text_lines = [line[1:]]
            text_start = line_no
            continue

        current: List[str] = []
        quote = ""
        n = len(line)
        while col < n:
            ch = line[col]

            if state is LexState.NORMAL:
                if ch.isspace():
                    if current:
                        yield _classify("".join(current), line_no)
                        current = []
                elif not current and ch == "#":
                    state = LexState.COMMENT
                    break
                elif not current and ch in _QUOTE_STATES:
                    state = _QUOTE_STATES[ch]
                    quote = ch
                else:
                    current.append(ch)

            else:  # quoted
                closes = ch == quote and (col + 1 == n or line[col + 1].isspace())
                if closes:
                    yield CifToken(TokenKind.VALUE, "".join(current), line_no)
                    current = []
                    state = LexState.NORMAL
                else:
                    current.append(ch)

            col += 1

        if state in (LexState.SINGLE_QUOTED, LexState.DOUBLE_QUOTED):
            logger.debug(f"Unterminated quoted value on line {line_no}")
            yield CifToken(TokenKind.VALUE, "".join(current), line_no)
        elif state is LexState.NORMAL and current:
            yield _classify("".join(current), line_no)
        state = LexState.NORMAL

    if state is LexState.TEXT_BLOCK:
        logger.debug(f"Unterminated text block starting on line {text_start}")
        yield CifToken(TokenKind.VALUE, "\n".join(text_lines), text_start)


def read_cif_blocks(text: str) -> List[CifBlock]:
    """Group CIF tokens into data blocks.

    Content before the first ``data_`` header and the ``data_global``
    block are ignored.

    Args:
        text: CIF document

    Returns:
        Blocks in file order
    """
    blocks: List[CifBlock] = []
    block: Optional[CifBlock] = None
    pending_tag: Optional[str] = None
    loop_tags: List[str] = []
    loop_position = 0
    in_loop = False

    for token in tokenize_cif(text):
        if token.kind is TokenKind.DATA:
            block = CifBlock(name=token.value)
            if token.value.lower() != "global":
                blocks.append(block)
            pending_tag = None
            in_loop = False
            continue

        if block is None:
            continue

        if token.kind is TokenKind.LOOP:
            in_loop = True
            loop_tags = []
            loop_position = 0
            pending_tag = None

        elif token.kind is TokenKind.TAG:
            tag = normalize_tag(token.value)
            if in_loop and loop_position == 0:
                loop_tags.append(tag)
                block.items.setdefault(tag, [])
            else:
                in_loop = False
                pending_tag = tag

        elif in_loop and loop_tags:
            block.items[loop_tags[loop_position % len(loop_tags)]].append(token.value)
            loop_position += 1

        elif pending_tag is not None:
            block.items.setdefault(pending_tag, []).append(token.value)
            pending_tag = None

        else:
            logger.debug(f"Ignoring stray value {token.value!r} on line {token.line}")

    return blocks
