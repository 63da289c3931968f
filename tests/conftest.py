import pytest
import os

from fastapi.testclient import TestClient

# Set test environment
os.environ["ENV"] = "test"
os.environ["LOG_LEVEL"] = "ERROR"  # Reduce noise in tests

from paymaster.main import create_app
from paymaster.models import MarketData, PendingPayment, Position, ProtocolInfo
from paymaster.risk_engine import RiskAssessmentEngine, default_market_data
from paymaster.yield_optimizer import YieldAllocationOptimizer

FIXED_NOW = 1_700_000_000.0
DAY = 86400


@pytest.fixture
def fixed_clock():
    """Clock pinned to a fixed unix timestamp"""
    return lambda: FIXED_NOW

@pytest.fixture
def optimizer():
    """Optimizer with the built-in catalog and a moderate risk preference"""
    return YieldAllocationOptimizer(risk_preference=5)

@pytest.fixture
def risk_engine(fixed_clock):
    """Risk engine over the sample ledger with a pinned clock"""
    return RiskAssessmentEngine(market_data=default_market_data(FIXED_NOW), clock=fixed_clock)

@pytest.fixture
def empty_risk_engine(fixed_clock):
    """Risk engine with no payments and no positions"""
    return RiskAssessmentEngine(market_data=MarketData(), clock=fixed_clock)

@pytest.fixture
def sample_payment():
    return PendingPayment(
        id=7,
        recipient="0xabc",
        amount="200",
        next_payment_time=FIXED_NOW + 3 * DAY,
        coin="0x1::aptos_coin::AptosCoin"
    )

@pytest.fixture
def stable_position():
    """Heavily over-collateralized position on an appreciating asset"""
    return Position(
        protocol="Thala",
        borrowed_asset="USDC",
        borrowed_amount="100",
        collateral_asset="APT",
        collateral_amount="100",
        liquidation_threshold=150
    )

@pytest.fixture
def stable_market_data(stable_position):
    return MarketData(
        payments=[],
        positions=[stable_position],
        prices={"APT": 10, "USDC": 1},
        price_movements={"APT": 1.0, "USDC": 0}
    )

@pytest.fixture
def custom_catalog():
    return [
        ProtocolInfo(id=10, name="Alpha", current_apy=8.0, risk_score=2, minimum_deposit="1"),
        ProtocolInfo(id=11, name="Beta", current_apy=8.0, risk_score=2, minimum_deposit="1"),
    ]

@pytest.fixture
def app(risk_engine):
    """Fresh application with its own engine instances"""
    return create_app(
        yield_optimizer=YieldAllocationOptimizer(risk_preference=5),
        risk_engine=risk_engine
    )

@pytest.fixture
def client(app):
    """Create a test client for the FastAPI app"""
    return TestClient(app)
