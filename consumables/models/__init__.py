from .fields import QuantityField
from .items import ItemMaster
from .lots import ExpiredLotLog, LiveStock, OutOfStockEntry
from .ledger import StockTransaction
from .equipment import EquipmentUnit
from .requisitions import Indent, IndentComment, IndentLine
from .requests import ExperimentRequest, LineAllocation, RequestExperiment, RequestLine

__all__ = [
    "QuantityField",
    "ItemMaster",
    "LiveStock",
    "OutOfStockEntry",
    "ExpiredLotLog",
    "StockTransaction",
    "EquipmentUnit",
    "Indent",
    "IndentLine",
    "IndentComment",
    "ExperimentRequest",
    "RequestExperiment",
    "RequestLine",
    "LineAllocation",
]
