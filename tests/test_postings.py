"""Test sorted sequence intersection."""

from docindex.search.postings import intersect_all, intersect_sorted


class TestIntersectSorted:
    """Test two-pointer intersection."""

    def test_common_values(self):
        """Should keep values present in both lists, ascending."""
        assert intersect_sorted([1, 3, 5, 7], [2, 3, 4, 7, 9]) == [3, 7]

    def test_disjoint(self):
        """Disjoint lists should intersect to nothing."""
        assert intersect_sorted([1, 2], [3, 4]) == []

    def test_empty_side(self):
        """An empty side should give an empty result."""
        assert intersect_sorted([], [1, 2]) == []
        assert intersect_sorted([1, 2], []) == []

    def test_negative_offsets(self):
        """Shifted position lists can contain -1."""
        assert intersect_sorted([0, 4], [-1, 0, 3]) == [0]


class TestIntersectAll:
    """Test multi-list intersection."""

    def test_no_lists(self):
        assert intersect_all([]) == []

    def test_single_list_unchanged(self):
        assert intersect_all([[1, 2, 3]]) == [1, 2, 3]

    def test_order_independent(self):
        """The result should not depend on the order lists are given in."""
        lists = [[1, 2, 3, 4, 5], [2, 4], [2, 3, 4]]
        assert intersect_all(lists) == [2, 4]
        assert intersect_all(list(reversed(lists))) == [2, 4]

    def test_short_circuits_on_empty(self):
        """An empty intermediate result should end with nothing."""
        assert intersect_all([[1, 2], [3, 4], [1, 2, 3, 4]]) == []
