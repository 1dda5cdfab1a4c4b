from __future__ import annotations

import pytest

from voxel_wfc.enums import Direction, SolverState


class TestDirection:
    """Tests for the six adjacency directions."""

    def test_values_follow_the_rule_axis_order(self) -> None:
        assert [direction.value for direction in Direction] == [0, 1, 2, 3, 4, 5]
        assert [direction.name for direction in Direction] == ["LEFT", "RIGHT", "UP", "DOWN", "FRONT", "BACK"]

    @pytest.mark.parametrize("direction", list(Direction))
    def test_reverse_is_an_involution(self, direction: Direction) -> None:
        assert direction.reverse() != direction
        assert direction.reverse().reverse() == direction

    @pytest.mark.parametrize("direction", list(Direction))
    def test_reverse_vector_points_the_other_way(self, direction: Direction) -> None:
        vector = direction.to_vector()
        reverse_vector = direction.reverse().to_vector()

        assert tuple(a + b for a, b in zip(vector, reverse_vector)) == (0, 0, 0)
        assert sum(abs(component) for component in vector) == 1

    def test_down_points_towards_increasing_y(self) -> None:
        """The floor lies at the largest y coordinate."""
        assert Direction.DOWN.to_vector() == (0, 1, 0)
        assert Direction.UP.to_vector() == (0, -1, 0)


class TestSolverState:
    def test_terminal_states(self) -> None:
        assert SolverState.SUCCESS.value == "Success"
        assert SolverState.FAILED.value == "Failed"
        assert len(SolverState) == 5
