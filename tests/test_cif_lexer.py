"""Tests for the CIF tokenizer and block reader."""

import pytest


def _values(text):
    from molingest.data.parsers.cif_lexer import TokenKind, tokenize_cif

    return [token.value for token in tokenize_cif(text) if token.kind is TokenKind.VALUE]


# =============================================================================
# Tokenizer
# =============================================================================

class TestTokenizer:
    """Tests for tokenize_cif."""

    def test_token_kinds(self):
        from molingest.data.parsers.cif_lexer import TokenKind, tokenize_cif

        tokens = list(tokenize_cif("data_1ABC\nloop_\n_atom_site.id\n1\n"))

        assert [t.kind for t in tokens] == [
            TokenKind.DATA, TokenKind.LOOP, TokenKind.TAG, TokenKind.VALUE,
        ]
        assert tokens[0].value == "1ABC"
        assert [t.line for t in tokens] == [1, 2, 3, 4]

    def test_quoted_values(self):
        assert _values("_a 'two words'\n_b \"double quoted\"\n") == ["two words", "double quoted"]

    def test_primes_inside_names(self):
        """A quote inside a bare token does not open a quoted value."""
        assert _values("ATOM C1' O5' \"C2'\"\n") == ["ATOM", "C1'", "O5'", "C2'"]

    def test_quote_closes_only_before_whitespace(self):
        assert _values("_a 'it's here'\n") == ["it's here"]

    def test_text_block(self):
        text = "_struct.title\n;First line\nsecond line\n;\n_next 5\n"
        assert _values(text) == ["First line\nsecond line", "5"]

    def test_comments(self):
        text = "# header comment\n_cell.length_a 10.0 # trailing\n_name a#b\n"
        assert _values(text) == ["10.0", "a#b"]

    def test_hash_inside_quotes(self):
        assert _values("_a '# not a comment'\n") == ["# not a comment"]

    def test_unterminated_values_are_kept(self):
        assert _values("_a 'open quote\n") == ["open quote"]
        assert _values("_a\n;never closed\n") == ["never closed"]


# =============================================================================
# Block Reader
# =============================================================================

class TestReadCifBlocks:
    """Tests for read_cif_blocks."""

    def test_single_items_and_tag_normalization(self):
        from molingest.data.parsers.cif_lexer import read_cif_blocks

        blocks = read_cif_blocks("data_x\n_Cell.Length_A 12.5\n_cell_length_b 7\n")

        assert len(blocks) == 1
        assert blocks[0].name == "x"
        assert blocks[0].first("_cell_length_a") == "12.5"
        assert blocks[0].get("_cell_length_b") == ["7"]
        assert "_cell_length_c" not in blocks[0]
        assert blocks[0].first("_cell_length_c", "?") == "?"

    def test_loop_values_distributed(self):
        from molingest.data.parsers.cif_lexer import read_cif_blocks

        text = """data_t
loop_
_atom_site.id
_atom_site.label_atom_id
1 N
2 "C1'"
3 ;
_after 9
"""
        block = read_cif_blocks(text)[0]

        assert block.get("_atom_site_id") == ["1", "2", "3"]
        assert block.get("_atom_site_label_atom_id") == ["N", "C1'", ";"]
        assert block.first("_after") == "9"

    def test_loop_with_text_block_value(self):
        from molingest.data.parsers.cif_lexer import read_cif_blocks

        text = "data_t\nloop_\n_a\n_b\n1\n;multi\nline\n;\n2 x\n"
        block = read_cif_blocks(text)[0]

        assert block.get("_a") == ["1", "2"]
        assert block.get("_b") == ["multi\nline", "x"]

    def test_global_block_and_preamble_skipped(self):
        from molingest.data.parsers.cif_lexer import read_cif_blocks

        text = "_stray 1\ndata_global\n_g 2\ndata_first\n_v 3\ndata_second\n_v 4\n"
        blocks = read_cif_blocks(text)

        assert [b.name for b in blocks] == ["first", "second"]
        assert blocks[0].first("_v") == "3"
        assert "_g" not in blocks[0]

    @pytest.mark.parametrize("tag,expected", [
        ("_atom_site.Cartn_x", "_atom_site_cartn_x"),
        ("_atom_site_Cartn_x", "_atom_site_cartn_x"),
        ("_pdbx_struct_oper_list.matrix[1][1]", "_pdbx_struct_oper_list_matrix[1][1]"),
    ])
    def test_normalize_tag(self, tag, expected):
        from molingest.data.parsers.cif_lexer import normalize_tag

        assert normalize_tag(tag) == expected
