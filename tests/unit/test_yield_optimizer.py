import pytest

from paymaster.error_handling import InvalidArgumentError, NotFoundError
from paymaster.models import ProtocolInfo, ProtocolUpdate
from paymaster.yield_optimizer import (
    YieldAllocationOptimizer, allocate_percentages, recommendation_reason,
    risk_adjusted_apy, risk_level_description, round_half_up
)


class TestYieldAllocationOptimizer:
    """Tests for the yield allocation optimizer"""

    class TestRiskPreference:
        """Risk preference validation"""

        @pytest.mark.parametrize("value", [0, 11, -3])
        def test_out_of_range_rejected(self, optimizer, value):
            with pytest.raises(InvalidArgumentError):
                optimizer.set_risk_preference(value)

            # Stored preference is untouched
            assert optimizer.risk_preference == 5

        @pytest.mark.parametrize("value", [1, 10])
        def test_boundaries_accepted(self, optimizer, value):
            optimizer.set_risk_preference(value)
            assert optimizer.risk_preference == value

        def test_constructor_validates_preference(self):
            with pytest.raises(InvalidArgumentError):
                YieldAllocationOptimizer(risk_preference=0)

        def test_preference_changes_allocation(self, optimizer):
            optimizer.set_risk_preference(10)
            aggressive = [r.allocation_percentage for r in optimizer.optimize_allocation("1000")]

            optimizer.set_risk_preference(1)
            conservative = [r.allocation_percentage for r in optimizer.optimize_allocation("1000")]

            assert aggressive == [49, 31, 20]
            assert conservative == [47, 29, 24]

    class TestProtocolCatalog:
        """Catalog reads and updates"""

        def test_default_catalog(self, optimizer):
            protocols = optimizer.get_protocols_info()
            assert [p.name for p in protocols] == ["Thala", "Aries", "Momentum"]
            assert protocols[1].lockup_period == 7 * 86400

        def test_get_protocols_returns_copies(self, optimizer):
            protocols = optimizer.get_protocols_info()
            protocols[0].current_apy = 99.0
            protocols.pop()

            assert optimizer.get_protocols_info()[0].current_apy == 5.2
            assert len(optimizer.get_protocols_info()) == 3

        def test_update_merges_fields(self, optimizer):
            updated = optimizer.update_protocol_info(2, {"current_apy": 9.1})

            assert updated.current_apy == 9.1
            assert updated.name == "Aries"
            assert updated.risk_score == 5
            assert optimizer.get_protocols_info()[1].current_apy == 9.1

        def test_update_accepts_model(self, optimizer):
            optimizer.update_protocol_info(1, ProtocolUpdate(risk_score=4))
            thala = optimizer.get_protocols_info()[0]
            assert thala.risk_score == 4
            assert thala.current_apy == 5.2

        def test_update_unknown_protocol(self, optimizer):
            with pytest.raises(NotFoundError):
                optimizer.update_protocol_info(42, {"current_apy": 1.0})

        def test_update_invalid_value(self, optimizer):
            with pytest.raises(InvalidArgumentError):
                optimizer.update_protocol_info(1, {"risk_score": 11})

            assert optimizer.get_protocols_info()[0].risk_score == 3

    class TestOptimizeAllocation:
        """Allocation planning"""

        def test_default_allocation(self, optimizer):
            recommendations = optimizer.optimize_allocation("1000")

            assert [r.protocol_name for r in recommendations] == ["Momentum", "Aries", "Thala"]
            assert [r.allocation_percentage for r in recommendations] == [48, 30, 22]
            assert [r.risk_level for r in recommendations] == ["High", "Medium", "Low"]
            assert recommendations[0].expected_apy == 12.5

        def test_allocation_is_deterministic(self, optimizer):
            first = optimizer.optimize_allocation("1000")
            for _ in range(5):
                assert optimizer.optimize_allocation("1000") == first

        @pytest.mark.parametrize("preference", range(1, 11))
        @pytest.mark.parametrize("funds", ["5", "50", "1000", "123456.78"])
        def test_allocations_sum_to_100(self, optimizer, preference, funds):
            optimizer.set_risk_preference(preference)
            recommendations = optimizer.optimize_allocation(funds)

            assert recommendations
            assert sum(r.allocation_percentage for r in recommendations) == 100

        @pytest.mark.parametrize("funds", ["0", "10", "1000", "1e9"])
        def test_full_emergency_reserve_allocates_nothing(self, optimizer, funds):
            assert optimizer.optimize_allocation(funds, emergency_funds_percentage=100) == []

        def test_no_eligible_protocols(self, optimizer):
            # 0.45 allocatable is below every minimum deposit
            assert optimizer.optimize_allocation("0.5") == []

        def test_minimum_deposit_filter(self, optimizer):
            recommendations = optimizer.optimize_allocation("50")

            assert [r.protocol_name for r in recommendations] == ["Aries", "Thala"]
            assert [r.allocation_percentage for r in recommendations] == [59, 41]
            assert recommendations[0].reason.startswith("Strongly recommended due to 7.8% APY with Medium risk.")

        def test_single_eligible_protocol_takes_everything(self, optimizer):
            recommendations = optimizer.optimize_allocation("5")

            assert len(recommendations) == 1
            assert recommendations[0].protocol_name == "Thala"
            assert recommendations[0].allocation_percentage == 100

        def test_zero_allocations_are_omitted(self):
            catalog = [
                ProtocolInfo(id=1, name="Big", current_apy=100.1, risk_score=1, minimum_deposit="1"),
                ProtocolInfo(id=2, name="Tiny", current_apy=0.3, risk_score=1, minimum_deposit="1"),
                ProtocolInfo(id=3, name="Tinier", current_apy=0.3, risk_score=1, minimum_deposit="1"),
            ]
            optimizer = YieldAllocationOptimizer(risk_preference=10, protocols=catalog)

            recommendations = optimizer.optimize_allocation("1000")

            assert [r.protocol_name for r in recommendations] == ["Big"]
            assert recommendations[0].allocation_percentage == 100

        def test_ties_keep_catalog_order(self, custom_catalog):
            optimizer = YieldAllocationOptimizer(risk_preference=5, protocols=custom_catalog)

            recommendations = optimizer.optimize_allocation("1000")

            assert [r.protocol_name for r in recommendations] == ["Alpha", "Beta"]
            assert [r.allocation_percentage for r in recommendations] == [50, 50]

        def test_constructor_copies_catalog(self, custom_catalog):
            optimizer = YieldAllocationOptimizer(protocols=custom_catalog)
            optimizer.update_protocol_info(10, {"current_apy": 1.0})

            assert custom_catalog[0].current_apy == 8.0

        def test_malformed_funds_propagate(self, optimizer):
            with pytest.raises(ValueError):
                optimizer.optimize_allocation("lots")

        def test_updated_catalog_is_used(self, optimizer):
            optimizer.update_protocol_info(3, {"minimum_deposit": "5000"})
            recommendations = optimizer.optimize_allocation("1000")

            assert [r.protocol_name for r in recommendations] == ["Aries", "Thala"]

    class TestShouldRebalance:
        """Drift detection against the recommended allocation"""

        def test_empty_allocation_needs_rebalance(self, optimizer):
            assert optimizer.should_rebalance({}) is True

        def test_matching_allocation(self, optimizer):
            assert optimizer.should_rebalance({3: 48, 2: 30, 1: 22}) is False

        def test_small_drift_tolerated(self, optimizer):
            assert optimizer.should_rebalance({3: 40, 2: 35, 1: 25}) is False

        def test_drift_of_exactly_ten_tolerated(self, optimizer):
            assert optimizer.should_rebalance({3: 58, 2: 20, 1: 22}) is False

        def test_missing_recommended_protocol_counts_as_zero(self, optimizer):
            assert optimizer.should_rebalance({3: 48, 2: 30}) is True

        def test_unknown_protocol_in_current_allocation(self, optimizer):
            assert optimizer.should_rebalance({3: 48, 2: 30, 1: 22, 99: 15}) is True

        def test_reference_funds_override(self, optimizer):
            # 50 funds leave Momentum ineligible: Aries 59 / Thala 41
            assert optimizer.should_rebalance({2: 59, 1: 41}, reference_funds="50") is False
            assert optimizer.should_rebalance({2: 59, 1: 41}) is True


class TestAllocationHelpers:
    """Pure helper functions"""

    def test_risk_adjusted_apy(self):
        assert risk_adjusted_apy(12.5, 8, 5) == pytest.approx(7.7)
        assert risk_adjusted_apy(12.5, 8, 10) == pytest.approx(11.7)
        assert risk_adjusted_apy(12.5, 8, 1) == pytest.approx(4.5)

    @pytest.mark.parametrize("score,expected", [(1, "Low"), (3, "Low"), (4, "Medium"), (6, "Medium"), (7, "High"), (10, "High")])
    def test_risk_level_description(self, score, expected):
        assert risk_level_description(score) == expected

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (48.43, 48)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_allocate_percentages_last_absorbs_remainder(self):
        assert allocate_percentages([1.0, 1.0, 1.0]) == [33, 33, 34]

    def test_allocate_percentages_non_positive_total(self):
        assert allocate_percentages([0.0, 0.0]) == [0, 100]
        assert allocate_percentages([-1.0, -2.0]) == [0, 100]

    def test_allocate_percentages_negative_weight_clamped(self):
        allocations = allocate_percentages([10.0, -2.0, 1.0])
        assert allocations[1] == 0
        assert sum(allocations) == 100

    def test_recommendation_reason_tiers(self):
        protocol = ProtocolInfo(id=1, name="Thala", current_apy=5.2, risk_score=3, minimum_deposit="1")

        assert recommendation_reason(protocol, 51).startswith("Strongly recommended due to 5.2% APY with Low risk.")
        assert recommendation_reason(protocol, 50).startswith("Good allocation due to balanced 5.2% APY and Low risk profile.")
        assert recommendation_reason(protocol, 26).startswith("Good allocation")
        assert recommendation_reason(protocol, 25) == (
            "Small allocation recommended for diversification. Offers 5.2% APY with Low risk."
        )
