"""
Tests for configuration tree traversal, editing and path lookup.
"""
from types import MappingProxyType

import pytest

from encrypted_config.exceptions import ConfigTreeError
from encrypted_config.tree import (
    MISSING,
    NodeKind,
    clone,
    delete_key,
    get_path,
    insert_key,
    node_kind,
    rename_key,
    rename_keys,
    walk,
)


@pytest.fixture
def tree():
    return {
        'a': 1,
        'b': {'c': [10, {'d': 'x'}]},
        'e': None,
    }


class TestNodeKind:
    """Tests for node classification."""

    @pytest.mark.parametrize('node', ['text', 1, 1.5, True, None])
    def test_scalars(self, node):
        assert node_kind(node) is NodeKind.SCALAR

    @pytest.mark.parametrize('node', [[], (1, 2)])
    def test_sequences(self, node):
        assert node_kind(node) is NodeKind.SEQUENCE

    def test_mappings(self):
        assert node_kind({}) is NodeKind.MAPPING
        assert node_kind(MappingProxyType({})) is NodeKind.MAPPING


class TestWalk:
    """Tests for walk()."""

    def test_walk_preorder(self, tree):
        """Test every node is visited, parents before children."""
        paths = [visit.path for visit in walk(tree)]
        assert paths == [
            ('a',),
            ('b',),
            ('b', 'c'),
            ('b', 'c', 0),
            ('b', 'c', 1),
            ('b', 'c', 1, 'd'),
            ('e',),
        ]

    def test_walk_reports_parent(self, tree):
        """Test each visit carries its parent node."""
        visit = next(v for v in walk(tree) if v.key == 'd')
        assert visit.parent is tree['b']['c'][1]
        assert visit.value == 'x'

    def test_walk_prunes(self, tree):
        """Test descend() returning False skips a subtree."""
        visits = list(walk(tree, descend=lambda v: v.key != 'b'))
        assert [v.path for v in visits] == [('a',), ('b',), ('e',)]

    def test_walk_scalar_root(self):
        assert list(walk('just a string')) == []

    def test_walk_allows_parent_edits(self, tree):
        """Test the parent can be edited while walking it."""
        for visit in walk(tree):
            if visit.key == 'a':
                rename_key(visit.parent, 'a', 'z', 2)
        assert tree['z'] == 2
        assert 'a' not in tree


class TestEdits:
    """Tests for in-place mapping edits."""

    def test_clone_is_deep(self, tree):
        copied = clone(tree)
        copied['b']['c'][1]['d'] = 'changed'
        assert tree['b']['c'][1]['d'] == 'x'

    def test_delete_key(self, tree):
        assert delete_key(tree, 'a') == 1
        assert 'a' not in tree

    def test_delete_missing_key(self, tree):
        with pytest.raises(ConfigTreeError):
            delete_key(tree, 'missing')

    def test_insert_key_appends(self, tree):
        insert_key(tree, 'f', 'new')
        assert list(tree)[-1] == 'f'

    def test_insert_key_at_index(self, tree):
        insert_key(tree, 'f', 'new', index=1)
        assert list(tree) == ['a', 'f', 'b', 'e']

    def test_insert_existing_key_moves_it(self, tree):
        insert_key(tree, 'e', 'moved', index=0)
        assert list(tree) == ['e', 'a', 'b']
        assert tree['e'] == 'moved'

    def test_rename_key_keeps_position(self, tree):
        rename_key(tree, 'b', 'bee', 'value')
        assert list(tree) == ['a', 'bee', 'e']
        assert tree['bee'] == 'value'

    def test_rename_key_replaces_existing(self, tree):
        """Test an existing entry with the new name is replaced."""
        rename_key(tree, 'b', 'e', 'decrypted')
        assert tree == {'a': 1, 'e': 'decrypted'}
        assert list(tree) == ['a', 'e']

    def test_rename_missing_key(self, tree):
        with pytest.raises(ConfigTreeError):
            rename_key(tree, 'missing', 'x', 1)

    def test_rename_keys_in_one_pass(self, tree):
        rename_keys(tree, {'a': ('A', 'one'), 'e': ('E', 'none')})
        assert list(tree) == ['A', 'b', 'E']
        assert tree['A'] == 'one'
        assert tree['E'] == 'none'

    def test_rename_keys_missing_key_leaves_node(self, tree):
        with pytest.raises(ConfigTreeError):
            rename_keys(tree, {'a': ('A', 1), 'missing': ('x', 2)})
        assert list(tree) == ['a', 'b', 'e']

    def test_edit_immutable_mapping(self):
        with pytest.raises(ConfigTreeError):
            rename_key(MappingProxyType({'a': 1}), 'a', 'b', 1)

    def test_edit_sequence(self):
        with pytest.raises(ConfigTreeError):
            insert_key([1, 2], 'a', 1)


class TestGetPath:
    """Tests for dotted path lookup."""

    def test_top_level(self, tree):
        assert get_path(tree, 'a') == 1

    def test_nested_with_index(self, tree):
        assert get_path(tree, 'b.c.1.d') == 'x'
        assert get_path(tree, 'b.c.0') == 10

    def test_none_value_is_not_missing(self, tree):
        assert get_path(tree, 'e') is None

    def test_missing_key(self, tree):
        assert get_path(tree, 'b.missing') is MISSING

    def test_index_out_of_range(self, tree):
        assert get_path(tree, 'b.c.5') is MISSING

    def test_non_numeric_index(self, tree):
        assert get_path(tree, 'b.c.first') is MISSING

    def test_descend_into_scalar(self, tree):
        assert get_path(tree, 'a.b') is MISSING

    def test_default(self, tree):
        assert get_path(tree, 'nope', 'fallback') == 'fallback'

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == 'MISSING'
        assert type(MISSING)() is MISSING
