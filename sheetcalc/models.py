from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

CellValue = Union[int, float, str, None]

class CellFormat(BaseModel):
    type: str = "number"  # number, percentage, currency, date
    decimals: Optional[int] = None
    currency: Optional[str] = None

class FormulaEvaluateRequest(BaseModel):
    formula: str
    cells: Dict[str, CellValue] = Field(default_factory=dict)

class FormulaEvaluateResponse(BaseModel):
    formula: str
    value: Union[bool, int, float, str, None] = None
    error: bool = False

class RangeRequest(BaseModel):
    range: str
    cells: Dict[str, CellValue] = Field(default_factory=dict)

class RangeResponse(BaseModel):
    range: str
    values: List[float] = Field(default_factory=list)

class ColumnResponse(BaseModel):
    letter: str
    number: int

class SheetEvaluateRequest(BaseModel):
    headers: List[str] = Field(default_factory=list)
    data: List[Union[List[CellValue], Dict[str, CellValue]]] = Field(default_factory=list)
    formats: Dict[str, CellFormat] = Field(default_factory=dict)

class SheetEvaluateResponse(BaseModel):
    headers: List[str] = Field(default_factory=list)
    cells: Dict[str, Any] = Field(default_factory=dict)
    display: Dict[str, Any] = Field(default_factory=dict)

class SelectionRangeRequest(BaseModel):
    start: str
    end: str

class SelectionRangeResponse(BaseModel):
    range: str
