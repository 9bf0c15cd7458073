import pytest

from domain.accounts import Ledger
from domain.inventory import CostingEngine
from domain.selection import CostingMethod
from domain.settings import CostingSettings
from tests.constants import USD
from tests.helpers.time_utils import DEFAULT_DATE_GEN


@pytest.fixture(autouse=True)
def _reset_default_date_gen() -> None:
    DEFAULT_DATE_GEN.reset()


@pytest.fixture(scope="function")
def settings() -> CostingSettings:
    return CostingSettings(home_currency=USD, costing_method=CostingMethod.FIFO_BY_CREATION)


@pytest.fixture(scope="function")
def engine(settings: CostingSettings) -> CostingEngine:
    return CostingEngine(settings)


@pytest.fixture(scope="function")
def ledger() -> Ledger:
    return Ledger(USD)
