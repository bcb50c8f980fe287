"""
Tests for pdfsplit.arrangement.PageArrangement.
"""

import random

import pytest

from pdfsplit.arrangement import PageArrangement


class TestInitialize:

    def test_initialize_when_called_then_identity_order(self):
        """Should set the order to 0..n-1 with no rotations or markers."""
        arr = PageArrangement(5)
        assert arr.page_order == [0, 1, 2, 3, 4]
        assert arr.rotations == {}
        assert arr.split_markers == set()

    def test_initialize_when_state_edited_then_everything_reset(self):
        """Should clear rotations and markers regardless of prior edits."""
        # Arrange
        arr = PageArrangement(4)
        arr.rotate(1, 'right')
        arr.duplicate(2)
        arr.toggle_split(0)

        # Act
        arr.initialize(3)

        # Assert
        assert arr.page_order == [0, 1, 2]
        assert arr.rotations == {}
        assert arr.split_markers == set()
        assert arr.num_pages == 3

    def test_initialize_when_zero_pages_then_empty(self):
        arr = PageArrangement(0)
        assert arr.page_order == []
        assert len(arr) == 0


class TestRotate:

    def test_rotate_right_then_90(self):
        arr = PageArrangement(3)
        assert arr.rotate(2, 'right') is True
        assert arr.rotation_for(2) == 90

    def test_rotate_left_from_zero_then_270(self):
        """Should wrap negative angles into [0, 360)."""
        arr = PageArrangement(3)
        arr.rotate(0, 'left')
        assert arr.rotation_for(0) == 270

    @pytest.mark.parametrize("direction", ['left', 'right'])
    def test_rotate_four_times_then_back_to_zero(self, direction):
        arr = PageArrangement(2)
        for _ in range(4):
            arr.rotate(1, direction)
        assert arr.rotation_for(1) == 0

    @pytest.mark.parametrize("k", [0, 1, 2, 3, 5, 7, 10, 13])
    def test_rotate_k_times_when_any_k_then_matches_k_mod_4(self, k):
        """Should equal rotating (k mod 4) times and stay in {0, 90, 180, 270}."""
        arr = PageArrangement(1)
        ref = PageArrangement(1)
        for _ in range(k):
            arr.rotate(0, 'left')
        for _ in range(((k % 4) + 4) % 4):
            ref.rotate(0, 'left')
        assert arr.rotation_for(0) == ref.rotation_for(0)
        assert arr.rotation_for(0) in (0, 90, 180, 270)

    def test_rotate_when_duplicated_then_all_occurrences_share_rotation(self):
        arr = PageArrangement(3)
        arr.duplicate(1)
        arr.rotate(1, 'right')
        assert [arr.rotation_for(p) for p in arr.page_order] == [0, 90, 90, 0]

    def test_rotate_when_page_deleted_then_entry_is_inert(self):
        """Should accept rotating a page no slot shows any more."""
        arr = PageArrangement(3)
        arr.delete_by_slot(1)
        assert arr.rotate(1, 'right') is True
        assert arr.page_order == [0, 2]

    def test_rotate_when_page_out_of_range_then_ignored(self):
        arr = PageArrangement(3)
        assert arr.rotate(7, 'right') is False
        assert arr.rotations == {}

    def test_rotate_when_unknown_direction_then_raises(self):
        arr = PageArrangement(3)
        with pytest.raises(ValueError, match="direction"):
            arr.rotate(0, 'up')


class TestDuplicate:

    def test_duplicate_then_copy_inserted_after_first_occurrence(self):
        arr = PageArrangement(5)
        assert arr.duplicate(1) is True
        assert arr.page_order == [0, 1, 1, 2, 3, 4]

    def test_duplicate_when_already_duplicated_then_uses_first_slot(self):
        arr = PageArrangement(3)
        arr.duplicate(2)
        arr.duplicate(0)
        arr.duplicate(2)
        assert arr.page_order == [0, 0, 1, 2, 2, 2]

    def test_duplicate_when_page_absent_then_no_op(self):
        """Should not insert anything when the page is not in the order."""
        arr = PageArrangement(4)
        arr.delete_by_slot(0)
        assert arr.duplicate(0) is False
        assert arr.page_order == [1, 2, 3]

    def test_duplicate_when_marker_after_original_then_marker_follows_copy(self):
        """A boundary right after the original should end up after the copy."""
        # Arrange
        arr = PageArrangement(5)
        arr.toggle_split(1)
        arr.toggle_split(3)

        # Act
        arr.duplicate(1)

        # Assert
        assert arr.page_order == [0, 1, 1, 2, 3, 4]
        assert arr.split_markers == {2, 4}

    def test_duplicate_when_marker_before_original_then_unchanged(self):
        arr = PageArrangement(5)
        arr.toggle_split(0)
        arr.duplicate(3)
        assert arr.split_markers == {0}


class TestDeleteBySlot:

    def test_delete_by_slot_then_markers_shift(self):
        """Deleting slot 2 of [0..4] with markers {1,3} leaves markers {1,2}."""
        # Arrange
        arr = PageArrangement(5)
        arr.toggle_split(1)
        arr.toggle_split(3)

        # Act
        arr.delete_by_slot(2)

        # Assert
        assert arr.page_order == [0, 1, 3, 4]
        assert arr.split_markers == {1, 2}

    def test_delete_by_slot_when_marker_on_slot_then_dropped(self):
        arr = PageArrangement(5)
        arr.toggle_split(2)
        arr.delete_by_slot(2)
        assert arr.split_markers == set()

    def test_delete_by_slot_when_duplicate_then_other_occurrence_kept(self):
        arr = PageArrangement(3)
        arr.duplicate(1)
        arr.delete_by_slot(2)
        assert arr.page_order == [0, 1, 2]

    def test_delete_by_slot_when_last_slot_then_trailing_marker_dropped(self):
        """Should never leave a marker after the new last slot."""
        arr = PageArrangement(3)
        arr.toggle_split(1)
        arr.delete_by_slot(2)
        assert arr.page_order == [0, 1]
        assert arr.split_markers == set()

    @pytest.mark.parametrize("slot", [-1, 5, 99])
    def test_delete_by_slot_when_out_of_range_then_no_op(self, slot):
        arr = PageArrangement(5)
        assert arr.delete_by_slot(slot) is False
        assert arr.page_order == [0, 1, 2, 3, 4]


class TestDeleteByLogicalIndex:

    def test_delete_by_logical_index_then_all_occurrences_removed(self):
        arr = PageArrangement(4)
        arr.duplicate(2)
        arr.duplicate(2)
        assert arr.delete_by_logical_index(2) is True
        assert arr.page_order == [0, 1, 3]

    def test_delete_by_logical_index_then_markers_on_its_slots_dropped(self):
        # Arrange: order [0, 1, 1, 2, 3], markers after both copies of 1
        arr = PageArrangement(4)
        arr.duplicate(1)
        arr.toggle_split(1)
        arr.toggle_split(2)
        arr.toggle_split(3)

        # Act
        arr.delete_by_logical_index(1)

        # Assert
        assert arr.page_order == [0, 2, 3]
        assert arr.split_markers == {1}

    def test_delete_by_logical_index_when_absent_then_no_op(self):
        arr = PageArrangement(2)
        assert arr.delete_by_logical_index(5) is False
        assert arr.page_order == [0, 1]


class TestToggleSplit:

    def test_toggle_split_twice_then_removed(self):
        arr = PageArrangement(4)
        arr.toggle_split(1)
        assert arr.split_markers == {1}
        arr.toggle_split(1)
        assert arr.split_markers == set()

    @pytest.mark.parametrize("slot", [-1, 3, 4])
    def test_toggle_split_when_out_of_range_then_rejected(self, slot):
        """Should refuse markers after the last slot or before the first."""
        arr = PageArrangement(4)
        assert arr.toggle_split(slot) is False
        assert arr.split_markers == set()


class TestInvariantsUnderRandomEdits:

    @pytest.mark.parametrize("seed", [0, 1, 42, 999, 12345])
    def test_random_edits_when_applied_then_invariants_hold(self, seed):
        """Order entries, marker positions and rotations stay valid after any edits."""
        rng = random.Random(seed)
        num_pages = rng.randint(1, 8)
        arr = PageArrangement(num_pages)
        for _ in range(200):
            op = rng.choice(['rotate', 'duplicate', 'delete', 'delete_page', 'split'])
            if op == 'rotate':
                arr.rotate(rng.randint(-1, num_pages), rng.choice(['left', 'right']))
            elif op == 'duplicate':
                arr.duplicate(rng.randint(-1, num_pages))
            elif op == 'delete':
                arr.delete_by_slot(rng.randint(-1, len(arr)))
            elif op == 'delete_page':
                arr.delete_by_logical_index(rng.randint(0, num_pages - 1))
            else:
                arr.toggle_split(rng.randint(-1, len(arr)))

            assert all(0 <= p < num_pages for p in arr.page_order)
            assert all(0 <= m <= len(arr) - 2 for m in arr.split_markers)
            assert set(arr.rotations.values()) <= {0, 90, 180, 270}
