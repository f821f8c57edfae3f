"""Level derivation tests: 100 points per level, starting at level 1."""

from civic_rewards.ledger.levels import compute_level


class TestLevelComputation:
    def test_level_1_at_zero(self):
        result = compute_level(0)
        assert result["level"] == 1
        assert result["points_to_next_level"] == 100

    def test_boundary_99(self):
        """99 points is still level 1."""
        assert compute_level(99)["level"] == 1

    def test_level_2_at_100(self):
        result = compute_level(100)
        assert result["level"] == 2
        assert result["level_floor"] == 100
        assert result["next_level_at"] == 200

    def test_level_3_at_250(self):
        result = compute_level(250)
        assert result["level"] == 3
        assert result["points_to_next_level"] == 50

    def test_negative_balance_stays_level_1(self):
        result = compute_level(-40)
        assert result["level"] == 1
        assert result["balance"] == -40
        assert result["points_to_next_level"] == 140
        assert compute_level(-50)["points_to_next_level"] == 150
        assert compute_level(-250)["level"] == 1
